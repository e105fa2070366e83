"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SearchMode = Literal["semantic", "hybrid"]


class SearchConfig(BaseModel):
    """Immutable snapshot of the retrieval feature flags and weights.

    Passed explicitly into the orchestrator, router and indexer so a single
    query never observes a configuration change halfway through.
    """

    model_config = ConfigDict(frozen=True)

    enable_hybrid_search: bool = True
    enable_reranking: bool = False
    enable_query_expansion: bool = True
    enable_token_chunking: bool = True
    enable_diversification: bool = False
    search_mode: SearchMode = "hybrid"

    dense_weight: float = Field(default=1.5, ge=0.0)
    lexical_weight: float = Field(default=0.2, ge=0.0)
    rrf_k: int = Field(default=30, ge=1)
    rerank_top_k: int = Field(default=20, ge=1)
    mmr_lambda: float = Field(default=0.7, ge=0.0, le=1.0)
    candidate_multiplier: int = Field(default=2, ge=1)
    lexical_min_score: float = Field(default=0.01, ge=0.0)
    hybrid_rollout_percentage: int | None = Field(default=None, ge=0, le=100)

    chunk_window_tokens: int = Field(default=16, ge=1)
    chunk_stride_tokens: int = Field(default=8, ge=1)
    chunk_max_characters: int = Field(default=1500, ge=1)
    chunk_overlap_characters: int = Field(default=200, ge=0)

    expansion_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_stride(self) -> "SearchConfig":
        """Stride may not exceed the window or token ranges would leave gaps."""
        if self.chunk_stride_tokens > self.chunk_window_tokens:
            raise ValueError(
                f"chunk_stride_tokens ({self.chunk_stride_tokens}) must not exceed "
                f"chunk_window_tokens ({self.chunk_window_tokens})"
            )
        return self

    @property
    def uses_v2_schema(self) -> bool:
        """Whether collections need the lexical column and line provenance."""
        return self.enable_hybrid_search or self.enable_token_chunking


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Vector store
    vectordb_path: str = Field(
        default=".local-data/vectordb", description="Embedded Qdrant storage directory"
    )
    qdrant_url: str | None = Field(
        default=None, description="Qdrant server URL (overrides the embedded store when set)"
    )
    qdrant_timeout: int = Field(default=30, description="Qdrant request timeout in seconds")
    collection_prefix: str = Field(default="agent_", description="Per-agent collection prefix")

    # Embedders
    embedder_model: str = Field(
        default="BAAI/bge-small-en-v1.5", description="Dense text embedding model"
    )
    embedder_device: str = Field(
        default="cpu", description="Device for embedder inference: cpu, cuda, mps"
    )
    embedder_batch_size: int = Field(default=32, description="Batch size for embedding")

    # Reranker
    rerank_model: str = Field(
        default="cross-encoder/ms-marco-MiniLM-L-6-v2", description="Cross-encoder model"
    )
    reranker_device: str | None = Field(
        default=None, description="Device for reranker inference (auto-detected if unset)"
    )
    reranker_batch_size: int = Field(default=16, description="Batch size for reranking")

    # Retrieval feature flags
    enable_hybrid_search: bool = Field(default=True, description="Enable dense + lexical fusion")
    enable_reranking: bool = Field(default=False, description="Enable cross-encoder reranking")
    enable_query_expansion: bool = Field(default=True, description="Enable synonym expansion")
    enable_token_chunking: bool = Field(
        default=True, description="Use token-aligned micro-chunks with line provenance"
    )
    enable_diversification: bool = Field(default=False, description="Enable MMR diversification")
    search_mode: str = Field(default="hybrid", description="Search mode: 'semantic' or 'hybrid'")

    # Fusion weights
    dense_weight: float = Field(default=1.5, description="RRF weight for the dense list")
    lexical_weight: float = Field(default=0.2, description="RRF weight for the lexical list")
    rrf_k: int = Field(default=30, description="RRF smoothing constant")
    rerank_top_k: int = Field(default=20, description="Number of fused hits sent to the reranker")
    mmr_lambda: float = Field(default=0.7, description="MMR relevance/diversity trade-off")
    hybrid_rollout_percentage: int | None = Field(
        default=None,
        description="Percentage of agents routed to hybrid search. Unset routes every agent.",
    )

    # Chunking
    chunk_window_tokens: int = Field(default=16, description="Token window per micro-chunk")
    chunk_stride_tokens: int = Field(default=8, description="Token stride between micro-chunks")
    chunk_max_characters: int = Field(default=1500, description="Character chunk size")
    chunk_overlap_characters: int = Field(default=200, description="Character chunk overlap")
    tokenizer_encoding: str = Field(default="cl100k_base", description="tiktoken encoding name")

    # Query expansion
    expansion_threshold: float = Field(default=0.7, description="Expansion similarity threshold")
    expansion_cache_size: int = Field(default=1000, description="Expansion cache size (LRU)")
    expansion_cache_ttl: int = Field(default=3600, description="Expansion cache TTL in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=False, description="Emit JSON logs")

    @field_validator("search_mode")
    @classmethod
    def validate_search_mode(cls, v: str) -> str:
        """Validate search mode."""
        if v not in ["semantic", "hybrid"]:
            raise ValueError(f"Search mode must be 'semantic' or 'hybrid', got '{v}'")
        return v

    @field_validator("hybrid_rollout_percentage", mode="before")
    @classmethod
    def parse_rollout_percentage(cls, v: str | int | None) -> int | None:
        """Parse the rollout percentage, treating an empty string as unset."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        value = int(v)
        if not 0 <= value <= 100:
            raise ValueError(f"Rollout percentage must be within 0..100, got {value}")
        return value

    def search_config(self) -> SearchConfig:
        """Take an immutable snapshot of the retrieval settings."""
        return SearchConfig(
            enable_hybrid_search=self.enable_hybrid_search,
            enable_reranking=self.enable_reranking,
            enable_query_expansion=self.enable_query_expansion,
            enable_token_chunking=self.enable_token_chunking,
            enable_diversification=self.enable_diversification,
            search_mode=self.search_mode,  # type: ignore[arg-type]
            dense_weight=self.dense_weight,
            lexical_weight=self.lexical_weight,
            rrf_k=self.rrf_k,
            rerank_top_k=self.rerank_top_k,
            mmr_lambda=self.mmr_lambda,
            hybrid_rollout_percentage=self.hybrid_rollout_percentage,
            chunk_window_tokens=self.chunk_window_tokens,
            chunk_stride_tokens=self.chunk_stride_tokens,
            chunk_max_characters=self.chunk_max_characters,
            chunk_overlap_characters=self.chunk_overlap_characters,
            expansion_threshold=self.expansion_threshold,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()

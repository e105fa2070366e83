from filesearch.cli import run

run()

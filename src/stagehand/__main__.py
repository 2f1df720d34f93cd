"""Allow `python -m stagehand`."""

from stagehand.cli import app

app(prog_name="stagehand")

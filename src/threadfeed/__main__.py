from threadfeed.cli.app import app

app()

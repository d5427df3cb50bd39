from machina.cli.app import app

app()

from ai_translate.main import cli

if __name__ == "__main__":
    cli()

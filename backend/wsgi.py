from emilocker import create_app

app = create_app()

from app.stride import create_app

app = create_app()

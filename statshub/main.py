"""
statshub ASGI entry point.

    uvicorn statshub.main:app
    gunicorn statshub.main:app -c gunicorn.conf.py
"""

from statshub.config import get_settings
from statshub.serving.api.main import create_app

app = create_app(get_settings())


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

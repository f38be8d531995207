# xsslab/asgi.py  (uvicorn xsslab.asgi:app)
from dotenv import load_dotenv
load_dotenv()  # load .env before settings are read

from xsslab.main import create_app  # noqa: E402

app = create_app()

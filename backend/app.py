from fastapi import FastAPI

from backend.llm import LLM, create_llm
from backend.routes import router
from infinite_adventure.config import get_config, load_env

load_env()


def create_app(llm: LLM | None = None) -> FastAPI:
    app = FastAPI(title="Infinite Adventure")
    app.state.llm = llm or create_llm(get_config())
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (LLM chosen from LLM_PROVIDER)
app = create_app()

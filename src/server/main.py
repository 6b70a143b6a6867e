# -*- coding: utf-8 -*-
"""
后端 API 服务器

文件功能:
    - 提供基于 FastAPI 的查询服务，对外暴露共识高度与节点快照。
    - 快照文件由爬虫进程 (crawl.py) 周期性生成，本服务只读取。

公开接口:
    - GET /api/symbol/height: 共识区块高度 {height, finalizedHeight}
    - GET /api/symbol/nodes/peer: 原样返回节点快照文件
    - GET /api/symbol/nodes/peer/p2p: 快照的 P2P 已知节点投影
    - GET /api/symbol/nodes/api: API 节点列表（目前为空列表）
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings
from service.height import HeightCache, HeightQueryError, HeightQueryService
from service.log_config import setup_logging
from service.paths import get_snapshot_path
from service.peers import load_p2p_peers
from workers.snapshot import read_snapshot_text

# --- 应用和状态管理 ---

class AppState:
    """管理应用程序的全局状态"""
    def __init__(self, settings: Optional[Settings] = None):
        self.settings: Settings = settings or Settings.from_env()
        self.snapshot_path: str = str(get_snapshot_path(self.settings))
        self.height_service = HeightQueryService(
            trusted_nodes=self.settings.trusted_nodes,
            timeout=self.settings.height_timeout,
            cache=HeightCache(ttl=self.settings.height_cache_duration),
        )

state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(state.settings)
    logger.info("Server running")
    for path in ("height", "nodes/peer", "nodes/peer/p2p", "nodes/api"):
        logger.info(f"- http://localhost:{state.settings.port}/api/symbol/{path}")
    yield


app = FastAPI(
    title="Symbol 节点监视后端",
    description="提供共识高度与节点快照的查询 API",
    version="1.0.0",
    lifespan=lifespan,
)

router = APIRouter(prefix="/api/symbol")

DEVTOOLS_PATHS = ("/.well-known/", "/favicon.ico", "/chrome-extension/")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    with logger.contextualize(category="web"):
        client = request.client.host if request.client else "-"
        logger.info(f"{request.method} {request.url.path} - {client}")
        return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code != 404:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})
    url = str(request.url)
    if any(part in url for part in DEVTOOLS_PATHS):
        logger.debug(f"404 - {request.method} {request.url.path}")
    else:
        logger.warning(f"404 - {request.method} {request.url.path}")
    return JSONResponse(status_code=404, content={"error": "Endpoint not found"})

# --- API Endpoints ---

@router.get("/height", summary="获取共识区块高度")
async def get_height():
    try:
        result = await state.height_service.get_height()
    except HeightQueryError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    return result.model_dump(by_alias=True)


@router.get("/nodes/peer", summary="获取节点快照")
async def get_nodes_peer():
    try:
        content = read_snapshot_text(state.snapshot_path)
    except OSError as e:
        logger.error(f"读取节点快照失败: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to read nodeWatchPeers.json", "message": str(e)})
    return Response(content=content, media_type="application/json")


@router.get("/nodes/peer/p2p", summary="获取 P2P 已知节点")
async def get_nodes_peer_p2p():
    try:
        peers = load_p2p_peers(state.snapshot_path)
    except (OSError, ValueError, AttributeError, TypeError) as e:
        logger.error(f"读取节点快照失败: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to read nodeWatchPeers.json", "message": str(e)})
    return [peer.model_dump(by_alias=True) for peer in peers]


@router.get("/nodes/api", summary="获取 API 节点列表")
async def get_nodes_api():
    return []


app.include_router(router)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=state.settings.port, reload=False)

"""
FastAPI 接口模块 - 提供 /color 接口和静态文件
"""
import logging
from threading import Event

from fastapi import FastAPI, Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from .config import OverrideError
from .palette import ColorPicker
from .policy import RequestPolicy, RequestBodyError

logger = logging.getLogger(__name__)


def render_color(color: str, healthy: bool, picker: ColorPicker) -> Response:
    """把颜色写成带引号的字符串返回"""
    if not healthy:
        logger.info("Returning 500")
    if color == "":
        # 仅用于展示，不影响已经做出的决策
        color = picker.pick()

    if healthy:
        logger.info(f"Successful {color}")
    else:
        logger.info(f"500 - {color}")

    return Response(
        content=f'"{color}"',
        status_code=200 if healthy else 500,
        media_type="text/plain",
        headers={"X-Content-Type-Options": "nosniff"},
    )


def _error_response(message: str) -> Response:
    return Response(content=message, status_code=500, media_type="text/plain")


def create_app(policy: RequestPolicy, picker: ColorPicker = None, static_dir: str = None) -> FastAPI:
    """创建 FastAPI 应用"""
    if picker is None:
        picker = policy.picker

    app = FastAPI(
        title="colorteller",
        description="返回颜色的诊断服务，可注入延迟和失败",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    # 清除后进入排空阶段，之后的响应都带 Connection: close
    app.state.keep_alive = Event()
    app.state.keep_alive.set()

    @app.middleware("http")
    async def keep_alive_switch(request: Request, call_next):
        response = await call_next(request)
        if not app.state.keep_alive.is_set():
            response.headers["Connection"] = "close"
        return response

    async def get_color(request: Request):
        body = await request.body()
        try:
            # 延迟在事件循环上等待，只挂起这个请求
            decision = await policy.decide(body)
        except (RequestBodyError, OverrideError) as e:
            logger.warning(f"{body.decode('utf-8', 'replace')}: {e}")
            return _error_response(str(e))

        return render_color(decision.color, decision.success, picker)

    # methods=None 匹配任意方法，包括自定义方法
    app.add_route("/color", get_color, methods=None, include_in_schema=False)

    if static_dir:
        app.mount("/", StaticFiles(directory=static_dir), name="static")

    return app

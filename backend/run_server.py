"""
后端服务器启动脚本

启动 uvicorn 服务器运行 FastAPI 应用，监听地址可通过 HOST / PORT 环境变量覆盖。
"""

import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

# 保证以脚本方式运行时可以导入 comicforge 包
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


def main():
    """启动服务器"""
    import uvicorn
    from comicforge.core.config import settings
    from comicforge.main import app

    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", "8123"))

    print("=" * 60)
    print("ComicForge 页面图片生成服务启动中...")
    print(f"数据存储: {settings.storage_dir}")
    print(f"监听地址: http://{host}:{port}")
    print("=" * 60)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=settings.logging_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()

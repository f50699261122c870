#!/usr/bin/env python3
"""
房间重新布置服务启动脚本
"""

import sys


def check_dependencies():
    """检查依赖是否安装"""
    try:
        import fastapi
        import uvicorn
        import google.genai
        import openai
        import requests
        print("✅ 所有依赖已安装")
        return True
    except ImportError as e:
        print(f"❌ 缺少依赖: {e}")
        print("请运行: pip install -e .")
        return False


def main():
    """主函数"""
    print("🚀 启动房间重新布置服务...")

    # 检查依赖
    if not check_dependencies():
        sys.exit(1)

    try:
        import uvicorn
        from restager.core.config import settings
        print("✅ 服务启动成功!")
        print(f"📍 服务地址: http://localhost:{settings.PORT}")
        print(f"🔍 健康检查: http://localhost:{settings.PORT}/health")
        print(f"📝 API文档: http://localhost:{settings.PORT}/docs")
        print("\n按 Ctrl+C 停止服务")

        uvicorn.run("restager.main:app", host=settings.HOST, port=settings.PORT)

    except KeyboardInterrupt:
        print("\n👋 服务已停止")
    except Exception as e:
        print(f"❌ 启动失败: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

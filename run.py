#!/usr/bin/env python
"""
简历筛选引擎后端启动脚本

用法:
    python run.py                        # 默认启动 (127.0.0.1:8000)
    python run.py -p 8080                # 指定端口
    python run.py --host 0.0.0.0         # 允许外网访问
    python run.py --reload               # 开启热重载
    python run.py --max-workers 8        # 每个任务并发评分的简历数
    python run.py --env production       # 生产环境（关闭 /docs）
"""
import argparse
import os
import sys
from pathlib import Path

# 确保项目根目录在 Python 路径中
ROOT_DIR = Path(__file__).parent
sys.path.insert(0, str(ROOT_DIR))


def parse_args():
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        description="简历筛选引擎后端启动脚本",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--port", type=int, default=8000, help="服务端口 (默认: 8000)")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="服务地址 (默认: 127.0.0.1)")
    parser.add_argument("--reload", action="store_true", help="开启热重载 (开发模式)")
    parser.add_argument(
        "--env",
        choices=["development", "production"],
        help="运行环境，覆盖 APP_ENV",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        help="单个任务内并发处理的简历数，覆盖 SCREENING_MAX_WORKERS",
    )
    parser.add_argument(
        "--agent-timeout",
        type=float,
        help="单次评分 Agent 调用超时秒数，覆盖 SCREENING_AGENT_TIMEOUT",
    )
    return parser.parse_args()


def apply_overrides(args) -> None:
    """
    命令行参数写入环境变量

    必须在导入 app 之前执行，配置在首次导入时读取；热重载子进程继承环境变量
    """
    if args.env:
        os.environ["APP_ENV"] = args.env
        os.environ["DEBUG"] = "false" if args.env == "production" else "true"
    if args.max_workers is not None:
        if args.max_workers < 1:
            sys.exit("❌ --max-workers 必须大于等于 1")
        os.environ["SCREENING_MAX_WORKERS"] = str(args.max_workers)
    if args.agent_timeout is not None:
        os.environ["SCREENING_AGENT_TIMEOUT"] = str(args.agent_timeout)


def check_env():
    """检查 .env 与数据目录"""
    if not (ROOT_DIR / ".env").exists():
        print("⚠️  未找到 .env 文件，将使用默认配置（LLM_API_KEY 未配置时评分会全部失败）")

    data_dir = ROOT_DIR / "data"
    if not data_dir.exists():
        data_dir.mkdir(parents=True)
        print(f"✅ 数据目录已创建: {data_dir}")


def main():
    """主函数"""
    args = parse_args()
    apply_overrides(args)

    print("=" * 50)
    print("  简历筛选引擎后端服务")
    print("=" * 50)

    check_env()

    from app.core.config import settings

    print(f"\n🚀 启动服务...")
    print(f"   地址: http://{args.host}:{args.port}")
    if settings.debug:
        print(f"   文档: http://{args.host}:{args.port}/docs")
    print(f"   环境: {settings.app_env}")
    print(f"   热重载: {'开启' if args.reload else '关闭'}")
    print(f"   并发简历数: {settings.screening_max_workers}")
    print(f"   Agent 超时: {settings.screening_agent_timeout}s, 最多尝试 {settings.screening_agent_max_retry} 次")
    print("\n" + "-" * 50 + "\n")

    # 取消标记保存在进程内，只能单进程运行
    try:
        import uvicorn
        uvicorn.run(
            "app.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,
            log_level="info",
        )
    except ImportError:
        print("❌ 错误: 未安装 uvicorn，请运行: pip install -e .")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n👋 服务已停止")


if __name__ == "__main__":
    main()

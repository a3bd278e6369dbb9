import argparse
import json
import sys
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def _load_event(args: argparse.Namespace):
    from shipline.models import PushEvent  # type: ignore

    if args.webhook:
        payload = json.loads(Path(args.webhook).read_text(encoding="utf-8"))
        return PushEvent.from_webhook(payload)
    return PushEvent(branch=args.branch, repo_url=args.repo_url, commit=args.commit or None)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run the deployment pipeline once for a branch."
    )
    parser.add_argument(
        "--branch",
        default="",
        help="分支名（默认：流水线定义中的 default_branch）",
    )
    parser.add_argument(
        "--repo-url",
        default="",
        help="可选：覆盖流水线定义中的仓库地址",
    )
    parser.add_argument(
        "--commit",
        default="",
        help="可选：触发提交",
    )
    parser.add_argument(
        "--webhook",
        default="",
        help="可选：push webhook 负载JSON文件（替代 --branch）",
    )
    parser.add_argument(
        "--config",
        default="config/runtime.yaml",
        help="运行期配置（默认：config/runtime.yaml）",
    )
    args = parser.parse_args()

    _add_backend_to_path()
    from shipline.config import load_definition, reload_config, setup_logging  # type: ignore
    from shipline.interfaces import ConfigError  # type: ignore
    from shipline.pipeline import PipelineDispatcher  # type: ignore

    config = reload_config(args.config)
    config.ensure_dirs()
    setup_logging(config)

    definition = load_definition(config.definition_path)
    try:
        event = _load_event(args)
    except ValueError as exc:
        print(f"无效触发事件: {exc}")
        return 2

    try:
        with PipelineDispatcher(definition, max_runs=1) as dispatcher:
            outcome = dispatcher.run_sync(event)
    except ConfigError as exc:
        print(f"流水线定义无效: {exc}")
        return 2

    if outcome.succeeded:
        print(f"SUCCEEDED {outcome.artifact_name} {outcome.artifact_version}")
        return 0
    print(f"FAILED [{outcome.failed_stage}] {outcome.reason}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())

import argparse
import json
import sys

from submission_review.config.settings import load_settings
from submission_review.models.submission import Submission
from submission_review.storage.json_store import JsonStore
from submission_review.utils.logging import setup_logging


def cmd_serve(args, settings):
    import uvicorn

    from submission_review.api.app import create_app

    app = create_app(data_dir=args.data_dir, policy_file=args.policy_file, settings=settings)
    uvicorn.run(app, host=args.host, port=args.port)


def cmd_register(args, settings):
    store = JsonStore(args.data_dir or settings.data_dir)
    with open(args.file, encoding="utf-8") as f:
        data = json.load(f)
    submission = Submission.model_validate(data)
    try:
        submission = store.create_submission(submission)
    except FileExistsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Registered submission: {submission.id} ({submission.title or submission.task_id})")


def cmd_policy(args, settings):
    from submission_review.registry.step_registry import StepRegistry

    policy_file = args.policy_file or settings.review.policy_file
    registry = StepRegistry.from_yaml(policy_file) if policy_file else StepRegistry()
    for i, step in enumerate(registry.policy.steps, start=1):
        print(f"{i}. {step.id}: {step.name}")
        for reason in registry.get_rejection_options(step.id):
            print(f"     - {reason}")


def cmd_monitor(args, settings):
    import time

    from submission_review.monitor.generation_monitor import GenerationTaskMonitor

    store = JsonStore(args.data_dir or settings.data_dir)
    monitor = GenerationTaskMonitor(store, settings.harness, settings.monitor)
    if args.once:
        changed = monitor.check_pending_tasks()
        print(f"Finished tasks: {len(changed)}")
        return

    monitor.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        monitor.stop()


def main():
    parser = argparse.ArgumentParser(prog="srv", description="Submission Review Service")
    parser.add_argument("--config", help="Path to YAML config file")
    sub = parser.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="Start the web server")
    serve_p.add_argument("--host", default="0.0.0.0")
    serve_p.add_argument("--port", type=int, default=8000)
    serve_p.add_argument("--data-dir")
    serve_p.add_argument("--policy-file")

    reg_p = sub.add_parser("register", help="Register a submission from JSON")
    reg_p.add_argument("file", help="Path to submission JSON file")
    reg_p.add_argument("--data-dir")

    pol_p = sub.add_parser("policy", help="Print review steps and rejection reasons")
    pol_p.add_argument("--policy-file")

    mon_p = sub.add_parser("monitor", help="Poll running generation tasks")
    mon_p.add_argument("--once", action="store_true", help="Check once and exit")
    mon_p.add_argument("--data-dir")

    args = parser.parse_args()
    settings = load_settings(args.config)
    setup_logging(settings.log_level)

    if args.command == "serve":
        cmd_serve(args, settings)
    elif args.command == "register":
        cmd_register(args, settings)
    elif args.command == "policy":
        cmd_policy(args, settings)
    elif args.command == "monitor":
        cmd_monitor(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

import argparse
import shlex
import sys
from pathlib import Path

from encodebox.config import config
from encodebox.correction import FfprobeException, InspectionError, Inspector
from encodebox.models import ASPECT_RATIO_OPTIONS


def main() -> None:
    parser = argparse.ArgumentParser(description="show the corrections a file would get")

    parser.add_argument("path", help="file to inspect")
    parser.add_argument(
        "-a",
        "--aspect-ratio",
        choices=ASPECT_RATIO_OPTIONS,
        default="None",
        help="force a display aspect ratio (default: none)",
    )
    parser.add_argument(
        "--screenshots",
        action="store_true",
        help="also render preview frames into the screenshot cache",
    )

    args = parser.parse_args()

    path = Path(args.path).resolve()
    inspector = Inspector.from_config(config)

    try:
        inspection = inspector.inspect(path, args.aspect_ratio, screenshots=args.screenshots)
    except (FfprobeException, InspectionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    plan = inspection.plan

    print("crop:", inspection.crop_detect_result)
    print("suggested aspect ratio:", inspection.suggested_aspect_ratio)

    for line in plan.summary() or ["no corrections needed"]:
        print("-", line)

    if plan.filter_args:
        print("filters:", shlex.quote(plan.filter_chain))

    for url in inspection.screenshot_urls:
        print(config.inspection.screenshots_dir / url.removeprefix("/screenshots/"))


if __name__ == "__main__":
    main()

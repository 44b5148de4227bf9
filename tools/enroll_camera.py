"""Camera enrollment kiosk.

Runs the quality-gated capture loop for one student and uploads the
resulting template (and best snapshot) to the attendance server.

Usage:
    python tools/enroll_camera.py --student S001
    python tools/enroll_camera.py --student S001 --frames-dir photos/S001
"""
import argparse
import logging
import os
import signal
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from dotenv import load_dotenv  # noqa: E402

from facecore.capture.cancellation import CancellationToken  # noqa: E402
from facecore.capture.enrollment import EnrollmentCapture, EnrollmentSettings  # noqa: E402
from facecore.client import ApiError, AttendanceClient  # noqa: E402
from facecore.inference.extractor import DlibDescriptorExtractor  # noqa: E402
from facecore.vision.frame_source import open_frame_source  # noqa: E402


def print_progress(progress):
    marker = '+' if progress.accepted else '-'
    print(f"[{marker}] attempt {progress.attempt}: {progress.message} "
          f"({progress.sample_count}/{progress.target_samples})")


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser()
    parser.add_argument('--student', required=True, help='student id to enroll')
    parser.add_argument('--api', default=os.getenv('ATTENDANCE_API_URL'))
    parser.add_argument('--camera', type=int, default=int(os.getenv('CAMERA_INDEX', '0')))
    parser.add_argument('--width', type=int, default=int(os.getenv('CAMERA_WIDTH', '640')))
    parser.add_argument('--height', type=int, default=int(os.getenv('CAMERA_HEIGHT', '480')))
    parser.add_argument('--frames-dir', help='enroll from still images instead of a camera')
    parser.add_argument('--no-snapshot', action='store_true', help='do not upload the reference photo')
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO').upper())

    client = AttendanceClient(args.api)
    token = CancellationToken()
    signal.signal(signal.SIGINT, lambda *_: token.cancel())

    def persist(outcome):
        face_image = None if args.no_snapshot else outcome.snapshot
        result = client.enroll_face(args.student, outcome.samples, face_image)
        print(f"Saved {result['sampleCount']} samples for {result['id']}")

    settings = EnrollmentSettings()
    if args.frames_dir:
        # still photos are replayed without pauses
        settings = EnrollmentSettings(interval=0)

    capture = EnrollmentCapture(
        open_frame_source(args.camera, args.width, args.height, args.frames_dir),
        DlibDescriptorExtractor(),
        settings=settings,
        on_progress=print_progress,
        persist=persist,
    )

    print("Look at the camera and move your head slightly...")
    try:
        outcome = capture.run(token)
    except ApiError as exc:
        print(f"Upload failed: {exc.message}")
        return 1

    print(outcome.message)
    return 0 if outcome.succeeded else 1


if __name__ == '__main__':
    sys.exit(main())

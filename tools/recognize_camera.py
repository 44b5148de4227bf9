"""Camera recognition kiosk.

Builds an averaged probe from a few frames, asks the server who it is
within the class roster and marks the student present.

Usage:
    python tools/recognize_camera.py --class 7A
    python tools/recognize_camera.py --class 7A --loop
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

from facecore.capture.cancellation import CancellationToken, CaptureCancelled  # noqa: E402
from facecore.capture.probe import FaceNotDetectedError, ProbeSettings, capture_probe  # noqa: E402
from facecore.client import ApiError, AttendanceClient, AttendanceConflict  # noqa: E402
from facecore.inference.extractor import DlibDescriptorExtractor  # noqa: E402
from facecore.vision.camera_manager import CameraError  # noqa: E402
from facecore.vision.frame_source import open_frame_source  # noqa: E402


def recognize_once(client, class_code, source, extractor, token, settings=ProbeSettings()):
    """Một lượt: probe -> recognize -> mark. Trả về thông báo cho người dùng."""
    try:
        probe = capture_probe(source, extractor, settings, token)
    except FaceNotDetectedError:
        return "Face not detected, please look at the camera"
    except CameraError as exc:
        return f"Camera unavailable ({exc}), check the connection and try again"

    try:
        result = client.recognize(class_code, probe)
    except AttendanceConflict as exc:
        name = (exc.match or {}).get('fullName') or 'Student'
        return f"{name} is already checked in today"

    match = result.get('match')
    if not match:
        return f"Face not recognized (distance={result.get('distance')})"

    try:
        client.mark_attendance(match['id'], class_code, 'PRESENT')
    except AttendanceConflict:
        return f"{match['fullName']} is already checked in today"
    return f"Welcome, {match['fullName']}! (distance={result['distance']:.3f})"


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser()
    parser.add_argument('--class', dest='class_code', required=True, help='class code')
    parser.add_argument('--api', default=os.getenv('ATTENDANCE_API_URL'))
    parser.add_argument('--camera', type=int, default=int(os.getenv('CAMERA_INDEX', '0')))
    parser.add_argument('--width', type=int, default=int(os.getenv('CAMERA_WIDTH', '640')))
    parser.add_argument('--height', type=int, default=int(os.getenv('CAMERA_HEIGHT', '480')))
    parser.add_argument('--loop', action='store_true', help='keep scanning until Ctrl+C')
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO').upper())

    client = AttendanceClient(args.api)
    extractor = DlibDescriptorExtractor()
    source = open_frame_source(args.camera, args.width, args.height)
    token = CancellationToken()
    signal.signal(signal.SIGINT, lambda *_: token.cancel())

    while not token.cancelled:
        try:
            print(recognize_once(client, args.class_code, source, extractor, token))
        except CaptureCancelled:
            break
        except ApiError as exc:
            print(f"Server error: {exc.message}")
        if not args.loop:
            break
        token.wait(2.0)
    return 0


if __name__ == '__main__':
    sys.exit(main())

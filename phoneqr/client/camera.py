# Camera frame source and QR decoder backed by OpenCV.
# cv2 is imported lazily so the server never needs it installed.

import logging

logger = logging.getLogger(__name__)


class CameraError(Exception):
    pass


class OpenCVCamera:
    def __init__(self, device_index: int = 0, width: int = 1280, height: int = 720):
        import cv2

        self._cv2 = cv2
        self._capture = cv2.VideoCapture(device_index)
        if not self._capture.isOpened():
            self._capture.release()
            raise CameraError(f"Could not open camera {device_index}")
        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        logger.info(f"Camera {device_index} opened")

    def read(self):
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera released")


class OpenCVDecoder:
    def __init__(self):
        import cv2

        self._detector = cv2.QRCodeDetector()

    def __call__(self, frame) -> str | None:
        text, _points, _ = self._detector.detectAndDecode(frame)
        return text or None

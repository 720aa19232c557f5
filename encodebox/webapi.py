import logging
from typing import Any

from flask import Flask, jsonify, request, send_from_directory
from pydantic import ValidationError

from encodebox.config import Config, config
from encodebox.correction import FfprobeException, InspectionError, Inspector, build_filter_args
from encodebox.models import EncodeRequest
from encodebox.scanner import file_id, find_media_files, path_from_id
from encodebox.transcoder import EncodeQueue

logging.getLogger("werkzeug").disabled = True

logger = logging.getLogger(__name__)


def _bad_request(message: str) -> Any:
    return jsonify({"message": message}), 400


def _encode_request(body: dict[str, Any], cfg: Config) -> EncodeRequest:
    enc = cfg.encoding

    payload: dict[str, Any] = {
        "videoCodec": enc.video_codec,
        "videoPreset": enc.video_preset,
        "videoCrf": enc.video_crf,
        "audioCodec": enc.audio_codec,
        "audioBitrate": enc.audio_bitrate,
    }
    payload.update({k: v for k, v in body.items() if v is not None and v != ""})

    if body.get("filters") is None:
        payload["filters"] = build_filter_args(
            deinterlace=bool(body.get("deinterlace")),
            crop=body.get("crop"),
            aspect_ratio=body.get("aspectRatio"),
        )

    return EncodeRequest.model_validate(payload)


def create_app(queue: EncodeQueue, inspector: Inspector, cfg: Config = config) -> Flask:
    app = Flask(__name__)

    @app.route("/health", methods=["GET"])
    def health() -> Any:
        return "OK", 200

    @app.route("/screenshots/<path:filename>", methods=["GET"])
    def screenshots(filename: str) -> Any:
        return send_from_directory(inspector.screenshots_dir, filename)

    @app.route("/api/", methods=["GET"])
    def index() -> Any:
        return jsonify({"message": "Hello from the API!"})

    @app.route("/api/mkv-files", methods=["GET"])
    def media_files() -> Any:
        files = find_media_files(cfg.media.root, cfg.media.extension)
        return jsonify({"files": [{"filePath": str(f), "id": file_id(f)} for f in files]})

    @app.route("/api/generate-screenshots", methods=["POST"])
    def generate_screenshots() -> Any:
        body = request.get_json(silent=True) or {}

        file_path = body.get("filePath")

        if not file_path and body.get("fileId"):
            try:
                file_path = str(path_from_id(str(body["fileId"])))
            except ValueError:
                return _bad_request(f"invalid fileId: {body['fileId']}")

        if not file_path:
            return _bad_request("filePath or fileId is required.")

        try:
            inspection = inspector.inspect(file_path, body.get("aspectRatio"))
        except ValueError as e:
            return _bad_request(str(e))
        except (FfprobeException, InspectionError) as e:
            logger.error(f"failed to inspect {file_path}: {e}")
            return jsonify({"message": f"Failed to generate screenshots or detect crop: {e}"}), 500

        return jsonify(inspection.model_dump(mode="json", by_alias=True))

    @app.route("/api/encode", methods=["POST"])
    def encode() -> Any:
        body = request.get_json(silent=True) or {}

        if not body.get("filePath") or not body.get("audioStreams"):
            return _bad_request("filePath and audioStreams are required.")

        try:
            job = queue.submit(_encode_request(body, cfg))
        except ValidationError as e:
            return _bad_request(f"invalid encode request: {e.error_count()} error(s): {e}")
        except ValueError as e:
            return _bad_request(str(e))

        return jsonify(job.model_dump(mode="json", by_alias=True)), 202

    @app.route("/api/encode/queue", methods=["GET"])
    def encode_queue() -> Any:
        return jsonify(queue.get_queue_state().model_dump(mode="json", by_alias=True))

    @app.route("/api/encode/cancel/<job_id>", methods=["POST"])
    def cancel(job_id: str) -> Any:
        queue.cancel(job_id)
        return jsonify({"message": "Job cancellation requested."}), 200

    return app

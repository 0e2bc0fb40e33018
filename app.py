import logging
import os
from typing import Any, Dict

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request

load_dotenv()

from scene.command_processors import CommandProcessor  # noqa: E402
from scene.props import PROP_PRESETS  # noqa: E402
from services.prop_generator import OPENAI_API_KEY, generate_prop  # noqa: E402
from spine.animation_engine import build_skeleton_json  # noqa: E402
from spine.css_exporter import export_svg  # noqa: E402
from timeline.baking import BakeMode  # noqa: E402

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))
logging.basicConfig(level=LOG_LEVEL, handlers=[handler])
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", os.urandom(16))

if not OPENAI_API_KEY:
    logger.warning("OPENAI_API_KEY is not set; prop generation jobs will fail")

# One live session per process
processor = CommandProcessor(generator=generate_prop)


def _bake_mode() -> BakeMode:
    value = request.args.get("mode", BakeMode.ACCURATE.value)
    try:
        return BakeMode(value)
    except ValueError:
        raise ValueError(f"Unknown bake mode '{value}' (use 'accurate' or 'interpolated')")


@app.route("/api/state", methods=["GET"])
def get_state():
    """Current session: pose, props, attachments, keyframes."""
    return jsonify(processor.snapshot().to_dict())


@app.route("/api/command", methods=["POST"])
def run_command():
    """Apply one structured edit command."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not data.get("intent"):
        return jsonify({"success": False, "message": "intent required", "action": "error"}), 400

    result = processor.process_command(data)
    status = 200 if result["success"] else 400
    return jsonify(result), status


@app.route("/api/props/generate", methods=["POST"])
def generate_prop_job():
    """Start a background prop generation job."""
    data = request.get_json(silent=True) or {}
    description = str(data.get("description", "")).strip()
    if not description:
        return jsonify({"error": "description required"}), 400

    job_id = processor.start_prop_generation(description)
    logger.info(f"Started prop generation job {job_id}: {description}")
    return jsonify({"job_id": job_id}), 202


@app.route("/api/jobs/<job_id>", methods=["GET"])
def job_status(job_id):
    status = processor.get_job_status(job_id)
    code = 404 if status.get("status") == "not_found" else 200
    return jsonify(status), code


@app.route("/api/presets", methods=["GET"])
def list_presets():
    """List the built-in prop presets."""
    presets = [
        {"key": key, "name": preset.name, "category": preset.category.value}
        for key, preset in PROP_PRESETS.items()
    ]
    return jsonify({"presets": presets})


@app.route("/api/export/spine", methods=["GET"])
def export_spine():
    """Bake the loop and return Spine skeleton JSON."""
    try:
        mode = _bake_mode()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    snapshot, result = processor.bake(mode)
    name = request.args.get("name", "loop")
    return jsonify(build_skeleton_json(snapshot.rig, snapshot.props, result, name))


@app.route("/api/export/svg", methods=["GET"])
def export_animated_svg():
    """Bake the loop and return a standalone animated SVG."""
    try:
        mode = _bake_mode()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    snapshot, result = processor.bake(mode)
    svg = export_svg(snapshot.rig, snapshot.props, result, arms_in_front=snapshot.arms_in_front)
    return Response(
        svg,
        mimetype="image/svg+xml",
        headers={"Content-Disposition": f"attachment; filename=gym-animation-{mode.value}.svg"},
    )


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "5006"))
    app.run(host="0.0.0.0", port=port, debug=True)

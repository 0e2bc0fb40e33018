"""
Command Processors

Owns the live editing session and executes structured commands against it.

Commands are dicts of the form {"intent": ..., "parameters": {...}}. Each
command runs one session edit under a lock and swaps the resulting state in
whole, so concurrent readers only ever see a complete state.

Prop generation talks to an external service and can take many seconds; it
runs as a background job and lands in the session as a single
register_generated_prop edit when it finishes.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

from timeline.baking import BakeMode, BakeResult, BakeSnapshot, bake

from . import session as edits
from .session import EditError, SessionState, new_session

logger = logging.getLogger(__name__)


def _point(params: Dict[str, Any]):
    try:
        x, y = float(params["x"]), float(params["y"])
    except (KeyError, TypeError, ValueError):
        raise EditError("Parameters 'x' and 'y' are required numbers")
    if not (math.isfinite(x) and math.isfinite(y)):
        raise EditError("Parameters 'x' and 'y' must be finite")
    return x, y


def _required(params: Dict[str, Any], key: str) -> Any:
    if key not in params:
        raise EditError(f"Parameter '{key}' is required")
    return params[key]


class CommandProcessor:
    """
    Processes commands and executes edits on the live session.
    """

    def __init__(self, state: Optional[SessionState] = None, generator: Optional[Callable] = None):
        """
        Initialize with an optional starting state and prop generator.

        Args:
            state: Initial session (a fresh one if omitted)
            generator: Callable(description) -> GenerationResult used for prop jobs
        """
        self.state = state or new_session()
        self.generator = generator
        self.jobs: Dict[str, Dict[str, Any]] = {}  # job_id -> status dict
        self._lock = threading.RLock()

    # --- Session access ---

    def snapshot(self) -> SessionState:
        with self._lock:
            return self.state

    def apply(self, edit: Callable[..., SessionState], *args, **kwargs) -> SessionState:
        """Run one edit function against the current state and commit the result."""
        with self._lock:
            self.state = edit(self.state, *args, **kwargs)
            return self.state

    def bake(self, mode: BakeMode = BakeMode.ACCURATE) -> Tuple[BakeSnapshot, BakeResult]:
        """
        Bake a frozen snapshot; edits arriving mid-bake are not observed.

        Returns the snapshot alongside the result so encoders see the same
        rig and props the frames were sampled from.
        """
        with self._lock:
            snapshot = BakeSnapshot.from_session(self.state)
        return snapshot, bake(snapshot, mode)

    # --- Command dispatch ---

    def process_command(self, command: Dict[str, Any]) -> Dict[str, Any]:
        """
        Process a structured command and return result.

        Args:
            command: Command dict with intent and parameters

        Returns:
            Result dict with success, message, action, and optional data
        """
        intent = command.get("intent", "unknown")
        params = command.get("parameters", {}) or {}

        handler = self._handlers().get(intent)
        if handler is None:
            return {
                "success": False,
                "message": f"Unknown command: {intent}",
                "action": "error",
            }

        try:
            with self._lock:
                before = self.state
                self.state = handler(before, params)
                changed = self.state is not before
                data = self.state.to_dict()
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Command {intent} rejected: {e}")
            return {
                "success": False,
                "message": f"Error processing command: {e}",
                "action": "error",
            }

        if not changed and intent == "delete_keyframe":
            return {
                "success": False,
                "message": "At least one keyframe must remain.",
                "action": intent,
            }

        return {
            "success": True,
            "message": f"{intent} applied",
            "action": intent,
            "data": data,
        }

    def _handlers(self) -> Dict[str, Callable[[SessionState, Dict[str, Any]], SessionState]]:
        return {
            "drag_effector": lambda s, p: edits.drag_end_effector(s, _required(p, "bone"), _point(p)),
            "aim_bone": lambda s, p: edits.aim_bone(s, _required(p, "bone"), _point(p)),
            "set_bone_angle": lambda s, p: edits.set_bone_angle(
                s, _required(p, "bone"), _required(p, "angle")
            ),
            "detach": lambda s, p: edits.detach_hand(s, _required(p, "bone")),
            "set_mirror_mode": lambda s, p: edits.set_mirror_mode(s, bool(_required(p, "enabled"))),
            "set_arms_in_front": lambda s, p: edits.set_arms_in_front(s, bool(_required(p, "enabled"))),
            "move_prop": lambda s, p: edits.move_prop(s, _required(p, "prop"), *_point(p)),
            "update_prop": lambda s, p: edits.apply_prop_transform(
                s, _required(p, "prop"), _required(p, "transform")
            ),
            "add_preset_prop": lambda s, p: edits.add_preset_prop(s, _required(p, "preset")),
            "delete_prop": lambda s, p: edits.delete_prop(s, _required(p, "prop")),
            "add_keyframe": lambda s, p: edits.add_keyframe(s, p.get("duration", 500)),
            "delete_keyframe": lambda s, p: edits.delete_keyframe(s, _required(p, "frame")),
            "set_duration": lambda s, p: edits.set_keyframe_duration(
                s, _required(p, "frame"), _required(p, "duration")
            ),
            "select_keyframe": lambda s, p: edits.select_keyframe(s, _required(p, "frame")),
            "play": lambda s, p: edits.start_playback(s),
            "stop": lambda s, p: edits.stop_playback(s),
            "tick": lambda s, p: edits.tick(s, _required(p, "dt")),
        }

    # --- Prop generation jobs ---

    def start_prop_generation(self, description: str, background: bool = True) -> str:
        """
        Start generating a prop from a text description.

        Args:
            description: Free-text description of the prop
            background: Run on a worker thread (False runs inline, for tests/CLI)

        Returns:
            Job id to poll with get_job_status
        """
        job_id = uuid.uuid4().hex[:8]
        self.create_job(job_id)

        if self.generator is None:
            self.update_job(job_id, {"status": "failed", "message": "Prop generation is not configured"})
            return job_id

        if background:
            worker = threading.Thread(target=self._run_generation, args=(job_id, description), daemon=True)
            worker.start()
        else:
            self._run_generation(job_id, description)
        return job_id

    def _run_generation(self, job_id: str, description: str) -> None:
        self.update_job(job_id, {"status": "running", "message": "Generating prop"})
        try:
            result = self.generator(description)
        except Exception as e:
            logger.error(f"Prop generation job {job_id} crashed: {e}")
            self.update_job(job_id, {"status": "failed", "message": str(e)})
            return

        if not result.ok:
            self.update_job(job_id, {"status": "failed", "message": result.error})
            return

        with self._lock:
            known = {p.id for p in self.state.props}
            self.state = edits.register_generated_prop(self.state, result)
            new_ids = [p.id for p in self.state.props if p.id not in known]

        self.update_job(job_id, {
            "status": "completed",
            "progress": 100,
            "message": f"Added prop '{result.name}'",
            "prop_id": new_ids[0] if new_ids else None,
        })

    def get_job_status(self, job_id: str) -> Dict[str, Any]:
        """
        Get status of a background job.

        Args:
            job_id: Job identifier

        Returns:
            Status dict with status, progress, result, etc.
        """
        if job_id in self.jobs:
            return dict(self.jobs[job_id])

        return {
            "status": "not_found",
            "message": f"Job {job_id} not found"
        }

    def create_job(self, job_id: str, initial_status: Optional[Dict[str, Any]] = None) -> None:
        self.jobs[job_id] = initial_status or {
            "status": "pending",
            "progress": 0,
            "message": "Job created"
        }

    def update_job(self, job_id: str, status_update: Dict[str, Any]) -> None:
        if job_id in self.jobs:
            self.jobs[job_id].update(status_update)
        else:
            self.jobs[job_id] = status_update

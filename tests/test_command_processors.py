import unittest

from scene.command_processors import CommandProcessor
from scene.props import PropCategory
from services.prop_generator import GenerationResult
from timeline.baking import BakeMode


def ok_generator(description):
    return GenerationResult(
        ok=True, name=description.title(), path="M0,0 L10,0", view_box="0 0 10 10",
        category=PropCategory.CABLE,
    )


def failing_generator(description):
    return GenerationResult.failure("service unavailable")


def crashing_generator(description):
    raise RuntimeError("socket closed")


class TestProcessCommand(unittest.TestCase):
    def setUp(self) -> None:
        self.processor = CommandProcessor()

    def test_unknown_intent(self) -> None:
        result = self.processor.process_command({"intent": "dance"})
        self.assertFalse(result["success"])
        self.assertEqual(result["action"], "error")

    def test_drag_effector_updates_state(self) -> None:
        result = self.processor.process_command(
            {"intent": "drag_effector", "parameters": {"bone": "hand_L", "x": 150, "y": 320}}
        )
        self.assertTrue(result["success"])
        hand = self.processor.state.rig.global_transform("hand_L", self.processor.state.pose)
        self.assertAlmostEqual(hand.x, 150, places=4)
        self.assertIn("pose", result["data"])

    def test_bad_parameters_are_reported_not_raised(self) -> None:
        before = self.processor.snapshot()
        for command in (
            {"intent": "drag_effector", "parameters": {"bone": "hand_L"}},
            {"intent": "set_bone_angle", "parameters": {"bone": "hand_L", "angle": "steep"}},
            {"intent": "set_bone_angle", "parameters": {"bone": "wing", "angle": 5}},
            {"intent": "add_preset_prop", "parameters": {"preset": "rowing_machine"}},
            {"intent": "update_prop", "parameters": {"prop": "nope", "transform": {"x": 1}}},
        ):
            result = self.processor.process_command(command)
            self.assertFalse(result["success"], command)
        self.assertIs(self.processor.snapshot(), before)

    def test_non_finite_values_are_rejected(self) -> None:
        frame_id = self.processor.state.current_frame_id
        before = self.processor.snapshot()
        for command in (
            {"intent": "set_duration", "parameters": {"frame": frame_id, "duration": float("inf")}},
            {"intent": "set_duration", "parameters": {"frame": frame_id, "duration": float("nan")}},
            {"intent": "add_keyframe", "parameters": {"duration": float("inf")}},
            {"intent": "set_bone_angle", "parameters": {"bone": "torso", "angle": float("nan")}},
            {"intent": "drag_effector", "parameters": {"bone": "hand_L", "x": float("inf"), "y": 0}},
            {"intent": "move_prop", "parameters": {"prop": "any", "x": 0, "y": float("nan")}},
        ):
            result = self.processor.process_command(command)
            self.assertFalse(result["success"], command)
        self.assertIs(self.processor.snapshot(), before)

        _, baked = self.processor.bake(BakeMode.ACCURATE)
        self.assertEqual(baked.total_duration, 500)

    def test_update_prop_accepts_transform_as_sent(self) -> None:
        self.processor.process_command({"intent": "add_preset_prop", "parameters": {"preset": "dumbbell"}})
        prop = self.processor.state.to_dict()["props"][0]
        transform = dict(prop["transform"], scaleX=-1)
        result = self.processor.process_command(
            {"intent": "update_prop", "parameters": {"prop": prop["id"], "transform": transform}}
        )
        self.assertTrue(result["success"], result["message"])
        self.assertEqual(result["data"]["props"][0]["transform"]["scaleX"], -1)

    def test_arms_in_front_command(self) -> None:
        result = self.processor.process_command({"intent": "set_arms_in_front", "parameters": {"enabled": True}})
        self.assertTrue(result["data"]["armsInFront"])
        snapshot, _ = self.processor.bake(BakeMode.INTERPOLATED)
        self.assertTrue(snapshot.arms_in_front)

    def test_refused_keyframe_delete(self) -> None:
        frame_id = self.processor.state.current_frame_id
        result = self.processor.process_command({"intent": "delete_keyframe", "parameters": {"frame": frame_id}})
        self.assertFalse(result["success"])
        self.assertEqual(result["message"], "At least one keyframe must remain.")

    def test_prop_and_keyframe_workflow(self) -> None:
        self.processor.process_command({"intent": "add_preset_prop", "parameters": {"preset": "dumbbell"}})
        prop_id = self.processor.state.props[0].id
        self.processor.process_command({"intent": "add_keyframe", "parameters": {"duration": 300}})
        result = self.processor.process_command(
            {"intent": "update_prop", "parameters": {"prop": prop_id, "transform": {"x": 120, "rotation": 45}}}
        )
        self.assertTrue(result["success"])
        self.assertEqual(len(result["data"]["keyframes"]), 2)
        self.assertEqual(result["data"]["keyframes"][1]["propTransforms"][prop_id]["rotation"], 45)

    def test_playback_commands(self) -> None:
        self.processor.process_command({"intent": "play"})
        self.assertTrue(self.processor.state.is_playing)
        self.processor.process_command({"intent": "tick", "parameters": {"dt": 16}})
        self.processor.process_command({"intent": "stop"})
        self.assertFalse(self.processor.state.is_playing)

    def test_bake_returns_matching_snapshot(self) -> None:
        self.processor.process_command({"intent": "add_preset_prop", "parameters": {"preset": "barbell"}})
        snapshot, result = self.processor.bake(BakeMode.INTERPOLATED)
        self.assertEqual(len(snapshot.props), 1)
        self.assertEqual(len(result.frames), 2)


class TestPropGenerationJobs(unittest.TestCase):
    def test_successful_job_adds_prop(self) -> None:
        processor = CommandProcessor(generator=ok_generator)
        job_id = processor.start_prop_generation("cable handle", background=False)
        status = processor.get_job_status(job_id)
        self.assertEqual(status["status"], "completed")
        self.assertEqual(status["progress"], 100)
        self.assertEqual(len(processor.state.props), 1)
        prop = processor.state.props[0]
        self.assertEqual(status["prop_id"], prop.id)
        self.assertEqual(prop.name, "Cable Handle")
        self.assertIs(prop.category, PropCategory.CABLE)

    def test_failed_job_leaves_scene_untouched(self) -> None:
        for generator in (failing_generator, crashing_generator):
            processor = CommandProcessor(generator=generator)
            before = processor.snapshot()
            job_id = processor.start_prop_generation("sled", background=False)
            self.assertEqual(processor.get_job_status(job_id)["status"], "failed")
            self.assertIs(processor.snapshot(), before)

    def test_unconfigured_generator_fails_job(self) -> None:
        processor = CommandProcessor()
        job_id = processor.start_prop_generation("sled")
        self.assertEqual(processor.get_job_status(job_id)["status"], "failed")

    def test_unknown_job(self) -> None:
        self.assertEqual(CommandProcessor().get_job_status("nope")["status"], "not_found")


if __name__ == "__main__":
    unittest.main()

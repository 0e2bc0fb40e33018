import unittest

from rig.human_rig import get_human_rig
from scene import session as edits
from scene.attachments import Attachment
from scene.co_motion import SYNC_EPSILON, apply_mirror, sync_hand_driven_props
from scene.props import prop_from_preset, transform_point


class TestMirror(unittest.TestCase):
    def test_partner_receives_negated_angle(self) -> None:
        rig = get_human_rig()
        pose = dict(rig.rest_pose(), upper_arm_L=30)
        mirrored = apply_mirror(rig, pose, ["upper_arm_L"])
        self.assertEqual(mirrored["upper_arm_R"], -30)
        self.assertEqual(mirrored["upper_arm_L"], 30)

    def test_unpaired_bones_are_left_alone(self) -> None:
        rig = get_human_rig()
        pose = dict(rig.rest_pose(), torso=15)
        self.assertEqual(apply_mirror(rig, pose, ["torso"]), pose)

    def test_mirror_mode_on_session_edit(self) -> None:
        state = edits.set_mirror_mode(edits.new_session(), True)
        state = edits.set_bone_angle(state, "lower_leg_R", 25)
        self.assertEqual(state.pose["lower_leg_L"], -25)

    def test_mirror_mode_on_ik_drag(self) -> None:
        state = edits.set_mirror_mode(edits.new_session(), True)
        state = edits.drag_end_effector(state, "hand_L", (150, 320))
        self.assertAlmostEqual(state.pose["upper_arm_R"], -state.pose["upper_arm_L"])
        self.assertAlmostEqual(state.pose["lower_arm_R"], -state.pose["lower_arm_L"])

    def test_mirror_off_leaves_partner(self) -> None:
        state = edits.new_session()
        before = state.pose["upper_arm_R"]
        state = edits.set_bone_angle(state, "upper_arm_L", 70)
        self.assertEqual(state.pose["upper_arm_R"], before)


class TestDumbbellCoMotion(unittest.TestCase):
    def setUp(self) -> None:
        state = edits.new_session()
        state = edits.add_prop(state, prop_from_preset("dumbbell", prop_id="db"))
        self.state = edits.move_prop(state, "db", 240, 320)

    def _handle_and_hand(self, state):
        prop = next(p for p in state.props if p.id == "db")
        handle = transform_point(0, 0, prop.transform)
        hand = state.rig.global_transform("hand_R", state.pose)
        return prop, handle, hand

    def test_grabbing_glues_dumbbell_to_hand(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_R", (241, 321))
        self.assertEqual(state.attachments["hand_R"].prop_id, "db")
        _, handle, hand = self._handle_and_hand(state)
        self.assertAlmostEqual(handle[0], hand.x, delta=SYNC_EPSILON + 1e-9)
        self.assertAlmostEqual(handle[1], hand.y, delta=SYNC_EPSILON + 1e-9)

    def test_dumbbell_follows_hand_and_rotation(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_R", (241, 321))
        offset = state.attachments["hand_R"].rotation_offset
        state = edits.drag_end_effector(state, "hand_R", (255, 305))

        self.assertIn("hand_R", state.attachments)
        prop, handle, hand = self._handle_and_hand(state)
        self.assertAlmostEqual(hand.x, 255, places=4)
        self.assertAlmostEqual(hand.y, 305, places=4)
        self.assertAlmostEqual(handle[0], hand.x, delta=SYNC_EPSILON + 1e-9)
        self.assertAlmostEqual(handle[1], hand.y, delta=SYNC_EPSILON + 1e-9)
        self.assertAlmostEqual(prop.transform.rotation, hand.angle - offset, delta=SYNC_EPSILON + 1e-9)

    def test_dumbbell_moves_are_recorded_in_keyframe(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_R", (241, 321))
        prop = next(p for p in state.props if p.id == "db")
        self.assertEqual(state.current_frame.prop_transforms["db"], prop.transform)

    def test_sync_returns_same_list_when_nothing_moved(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_R", (241, 321))
        props, changed = sync_hand_driven_props(state.rig, state.pose, state.props, state.attachments)
        self.assertFalse(changed)
        self.assertIs(props, state.props)

    def test_sync_skips_props_that_drive_the_hand(self) -> None:
        state = edits.add_prop(self.state, prop_from_preset("barbell", prop_id="bar"))
        attachments = {"hand_L": Attachment("bar", "close_l", 0.0)}
        props, changed = sync_hand_driven_props(state.rig, state.pose, state.props, attachments)
        self.assertFalse(changed)
        self.assertIs(props, state.props)


if __name__ == "__main__":
    unittest.main()

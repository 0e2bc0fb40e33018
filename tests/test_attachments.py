import unittest

from rig.skeleton import normalize_angle
from scene import session as edits
from scene.attachments import (
    SNAP_THRESHOLD,
    UNSNAP_THRESHOLD,
    Attachment,
    find_nearest_snap,
    resolve_anchor,
    resolve_drag_target,
)
from scene.props import PropCategory, PropTransform, SnapPoint, Prop, prop_from_preset, transform_point


def session_with_barbell(x=200.0, y=300.0):
    state = edits.new_session()
    state = edits.add_prop(state, prop_from_preset("barbell", prop_id="bar"))
    return edits.move_prop(state, "bar", x, y)


def hand_position(state, hand_id):
    gt = state.rig.global_transform(hand_id, state.pose)
    return gt.x, gt.y


class TestProps(unittest.TestCase):
    def test_transform_point_scales_then_rotates_then_translates(self) -> None:
        tr = PropTransform(x=10, y=20, rotation=90, scale_x=2, scale_y=1)
        x, y = transform_point(5, 0, tr)
        self.assertAlmostEqual(x, 10)
        self.assertAlmostEqual(y, 30)

    def test_category_parse_falls_back_to_fixture(self) -> None:
        self.assertIs(PropCategory.parse("FREE_WEIGHT"), PropCategory.FREE_WEIGHT)
        self.assertIs(PropCategory.parse("trampoline"), PropCategory.FIXTURE)
        self.assertIs(PropCategory.parse(None), PropCategory.FIXTURE)
        self.assertTrue(PropCategory.FREE_WEIGHT.hand_driven)
        self.assertFalse(PropCategory.BAR.hand_driven)

    def test_unknown_preset_raises(self) -> None:
        with self.assertRaises(KeyError):
            prop_from_preset("treadmill")


class TestSnapLookup(unittest.TestCase):
    def test_nearest_visible_snap_point_wins(self) -> None:
        prop = Prop(
            id="p",
            name="Test",
            transform=PropTransform(x=100, y=100),
            snap_points=(
                SnapPoint("hidden", "Hidden", 0, 0, visible=False),
                SnapPoint("near", "Near", 10, 0),
                SnapPoint("far", "Far", 50, 0),
            ),
        )
        candidate = find_nearest_snap([prop], (101, 100))
        self.assertEqual(candidate.snap_point_id, "near")
        self.assertAlmostEqual(candidate.distance, 9)

    def test_missing_anchor_resolves_to_none(self) -> None:
        self.assertIsNone(resolve_anchor([], Attachment("gone", "center", 0)))


class TestSnapStateMachine(unittest.TestCase):
    def setUp(self) -> None:
        self.state = session_with_barbell()
        # close_l sits 30 left of the bar centre
        self.anchor = (170.0, 300.0)

    def test_snaps_within_threshold(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", (172, 302))
        self.assertIn("hand_L", state.attachments)
        self.assertEqual(state.attachments["hand_L"].snap_point_id, "close_l")
        x, y = hand_position(state, "hand_L")
        self.assertAlmostEqual(x, self.anchor[0], places=4)
        self.assertAlmostEqual(y, self.anchor[1], places=4)

    def test_no_snap_outside_threshold(self) -> None:
        pointer = (self.anchor[0], self.anchor[1] - (SNAP_THRESHOLD + 5))
        state = edits.drag_end_effector(self.state, "hand_L", pointer)
        self.assertEqual(state.attachments, {})

    def test_snaps_at_exact_threshold(self) -> None:
        pointer = (self.anchor[0], self.anchor[1] - SNAP_THRESHOLD)
        state = edits.drag_end_effector(self.state, "hand_L", pointer)
        self.assertEqual(state.attachments["hand_L"].snap_point_id, "close_l")

    def test_stays_attached_at_exact_unsnap_threshold(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", self.anchor)
        pointer = (self.anchor[0], self.anchor[1] + UNSNAP_THRESHOLD)
        state = edits.drag_end_effector(state, "hand_L", pointer)
        self.assertIn("hand_L", state.attachments)
        x, y = hand_position(state, "hand_L")
        self.assertAlmostEqual(x, self.anchor[0], places=4)
        self.assertAlmostEqual(y, self.anchor[1], places=4)

    def test_hysteresis_keeps_grip_between_thresholds(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", self.anchor)
        state = edits.drag_end_effector(state, "hand_L", (self.anchor[0], self.anchor[1] + 30))
        self.assertIn("hand_L", state.attachments)
        x, y = hand_position(state, "hand_L")
        self.assertAlmostEqual(x, self.anchor[0], places=4)
        self.assertAlmostEqual(y, self.anchor[1], places=4)

    def test_releases_past_unsnap_threshold(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", self.anchor)
        pointer = (self.anchor[0], self.anchor[1] + (UNSNAP_THRESHOLD + 5))
        state = edits.drag_end_effector(state, "hand_L", pointer)
        self.assertNotIn("hand_L", state.attachments)
        x, y = hand_position(state, "hand_L")
        self.assertAlmostEqual(x, pointer[0], places=4)
        self.assertAlmostEqual(y, pointer[1], places=4)

    def test_missing_prop_treats_hand_as_free_without_detaching(self) -> None:
        attachments = {"hand_L": Attachment("ghost", "center", 0.0)}
        resolution = resolve_drag_target(
            self.state.rig, self.state.pose, self.state.props, attachments, "hand_L", (150, 280)
        )
        self.assertEqual(resolution.target, (150, 280))
        self.assertIn("hand_L", resolution.attachments)
        self.assertFalse(resolution.pinned)

    def test_moving_bar_carries_hand_and_keeps_grip_angle(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", (172, 302))
        offset = state.attachments["hand_L"].rotation_offset

        state = edits.move_prop(state, "bar", 250, 300)

        x, y = hand_position(state, "hand_L")
        self.assertAlmostEqual(x, 220, places=4)
        self.assertAlmostEqual(y, 300, places=4)
        hand = state.rig.global_transform("hand_L", state.pose)
        self.assertAlmostEqual(normalize_angle(hand.angle - offset), 0, places=6)

    def test_rotating_bar_rotates_hand_with_it(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", self.anchor)
        offset = state.attachments["hand_L"].rotation_offset
        state = edits.update_prop_transform(state, "bar", rotation=10)
        hand = state.rig.global_transform("hand_L", state.pose)
        self.assertAlmostEqual(normalize_angle(hand.angle - 10 - offset), 0, places=6)

    def test_detach_hand_is_explicit_release(self) -> None:
        state = edits.drag_end_effector(self.state, "hand_L", self.anchor)
        state = edits.detach_hand(state, "hand_L")
        self.assertEqual(state.attachments, {})
        self.assertIs(edits.detach_hand(state, "hand_L"), state)


if __name__ == "__main__":
    unittest.main()

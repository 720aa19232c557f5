import pytest

from encodebox.correction.deriver import (
    build_filter_args,
    derive_correction,
    guess_aspect_ratio,
    validate_aspect_ratio,
)
from encodebox.models import CropBox, StreamDescriptor


def video(
    width: int = 1920,
    height: int = 1080,
    sar: str = "1:1",
    field_order: str | None = "progressive",
) -> StreamDescriptor:
    return StreamDescriptor(
        index=0,
        kind="video",
        codec_name="h264",
        width=width,
        height=height,
        sample_aspect_ratio=sar,
        field_order=field_order,
    )


AUDIO = StreamDescriptor(index=1, kind="audio", codec_name="ac3", language="eng")


class TestDeinterlace:
    @pytest.mark.parametrize("field_order", ["tt", "bb", "tb", "bt", "unknown"])
    def test_interlaced_field_orders(self, field_order: str) -> None:
        plan = derive_correction([video(field_order=field_order), AUDIO], None)

        assert plan.filters[0].name == "yadif"
        assert plan.deinterlace_reason == field_order.upper()

    def test_progressive(self) -> None:
        plan = derive_correction([video(field_order="progressive")], None)

        assert all(f.name != "yadif" for f in plan.filters)
        assert plan.deinterlace_reason is None

    def test_missing_field_order(self) -> None:
        plan = derive_correction([video(field_order=None)], None)

        assert plan.filters == ()
        assert plan.deinterlace_reason is None


class TestCrop:
    def test_crop_filter(self) -> None:
        crop = CropBox(width=1920, height=800, x=0, y=140)

        plan = derive_correction([video()], crop)

        assert [str(f) for f in plan.filters] == ["crop=1920:800:0:140"]

    def test_order_is_deinterlace_crop_scale(self) -> None:
        crop = CropBox(width=704, height=480, x=8, y=0)

        plan = derive_correction([video(720, 480, "10:11", "tt")], crop, "4:3")

        assert [f.name for f in plan.filters] == ["yadif", "crop", "scale", "scale"]


class TestSampleAspectRatio:
    def test_ntsc_sar(self) -> None:
        plan = derive_correction([video(720, 480, "10:11")], None)

        assert [str(f) for f in plan.filters] == ["scale=655:480"]
        assert plan.aspect_correction is not None
        assert plan.aspect_correction.sar == "10:11"
        assert plan.aspect_correction.original_resolution == "720x480"
        assert plan.aspect_correction.target_resolution == "655x480"

    def test_square_pixels(self) -> None:
        plan = derive_correction([video(sar="1:1")], None)

        assert plan.aspect_correction is None
        assert plan.filters == ()

    @pytest.mark.parametrize("sar", ["0:1", "N/A", ""])
    def test_unknown_sar_is_square(self, sar: str) -> None:
        plan = derive_correction([video(sar=sar)], None)

        assert plan.aspect_correction is None

    def test_sar_uses_cropped_width(self) -> None:
        crop = CropBox(width=704, height=480, x=8, y=0)

        plan = derive_correction([video(720, 480, "10:11")], crop)

        assert str(plan.filters[-1]) == "scale=640:480"

    def test_scale_pins_square_pixels(self) -> None:
        plan = derive_correction([video(720, 480, "10:11")], None)

        assert plan.filter_args == ["scale=655:480", "setsar=1"]
        assert plan.filter_chain == "scale=655:480,setsar=1"


class TestManualAspectRatio:
    def test_override_scales_height(self) -> None:
        plan = derive_correction([video(1920, 1080)], None, "2.39:1")

        assert str(plan.filters[-1]) == "scale=1920:803"
        assert plan.aspect_ratio == "2.39:1"

    def test_override_uses_cropped_width(self) -> None:
        crop = CropBox(width=1440, height=1080, x=240, y=0)

        plan = derive_correction([video(1920, 1080)], crop, "4:3")

        assert [str(f) for f in plan.filters] == ["crop=1440:1080:240:0", "scale=1440:1080"]

    def test_none_override_adds_no_scale(self) -> None:
        plan = derive_correction([video(1920, 1080)], None, "None")

        assert plan.filters == ()

    def test_unknown_override_rejected(self) -> None:
        with pytest.raises(ValueError):
            derive_correction([video()], None, "3:2")


class TestGuessAspectRatio:
    def test_hd(self) -> None:
        assert guess_aspect_ratio(video(1920, 1080)) == "16:9"

    def test_scope_crop(self) -> None:
        crop = CropBox(width=1920, height=804, x=0, y=138)

        assert guess_aspect_ratio(video(1920, 1080), crop) == "2.39:1"

    def test_anamorphic_dvd(self) -> None:
        # 720x480 with 32:27 pixels displays as 16:9
        assert guess_aspect_ratio(video(720, 480, "32:27")) == "16:9"

    def test_outside_tolerance(self) -> None:
        assert guess_aspect_ratio(video(1000, 1000)) == "None"

    def test_missing_dimensions(self) -> None:
        stream = StreamDescriptor(index=0, kind="video")

        assert guess_aspect_ratio(stream) == "None"

    def test_plan_carries_guess_without_override(self) -> None:
        plan = derive_correction([video(1920, 1080)], None)

        assert plan.aspect_ratio == "16:9"
        assert plan.filters == ()


class TestNoVideo:
    def test_audio_only(self) -> None:
        plan = derive_correction([AUDIO], CropBox(width=10, height=10))

        assert plan.filters == ()
        assert plan.aspect_ratio == "None"


class TestValidateAspectRatio:
    @pytest.mark.parametrize("label", [None, ""])
    def test_empty_means_none(self, label: str | None) -> None:
        assert validate_aspect_ratio(label) == "None"

    def test_known(self) -> None:
        assert validate_aspect_ratio("1.85:1") == "1.85:1"


class TestBuildFilterArgs:
    def test_all_choices(self) -> None:
        args = build_filter_args(deinterlace=True, crop="crop=1920:800:0:140", aspect_ratio="16:9")

        assert args == ["yadif", "crop=1920:800:0:140", "setdar=dar=16/9"]

    def test_decimal_aspect_ratio(self) -> None:
        assert build_filter_args(aspect_ratio="1.85:1") == ["setdar=dar=37/20"]

    def test_no_crop_placeholder(self) -> None:
        assert build_filter_args(crop="No crop detected") == []

    def test_bad_crop_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_filter_args(crop="crop=abc")

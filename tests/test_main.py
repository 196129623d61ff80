from stash_feed import main


def test_sample_args_build_filter_spec() -> None:
    args = main.build_parser().parse_args(
        ["sample", "--tags", "3", "x", "3", "--max-duration", "90", "--orientation", "portrait", "--limit", "5"]
    )
    spec = main._spec_from_args(args)
    assert spec.tags == (3,)
    assert spec.max_duration == 90
    assert spec.orientations == ("portrait",)
    assert spec.limit == 5
    assert spec.saved_filter_id is None
    assert spec.short_form is False


def test_short_form_flag_reaches_filter_spec() -> None:
    args = main.build_parser().parse_args(["sample", "--short-form"])
    spec = main._spec_from_args(args)
    assert spec.short_form is True
    assert spec.needs_client_filter()


def test_search_args() -> None:
    args = main.build_parser().parse_args(["search", "performers", "ann", "--limit", "3"])
    assert (args.kind, args.term, args.limit) == ("performers", "ann", 3)

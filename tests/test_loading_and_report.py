"""Tests for CSV loading, result frames, the credit report and the CLI."""

import json
from datetime import UTC, datetime, timedelta

import pandas as pd
import pytest
from helpers import NOW, make_config, make_journey, make_touchpoint, three_step_journey

from credit_analysis import CreditReport
from credit_analysis.cli import (
    build_argument_parser,
    build_configuration,
    load_rules,
    main,
    parse_arguments,
)
from journey_credit import (
    Channel,
    ModelType,
    ValidationError,
    load_journeys,
    run_batch,
    validate_journey,
)
from journey_credit.frames import channel_credit, results_frame
from journey_credit.loading import journeys_from_frame

HEADER = "conversion_id,touchpoint_id,channel,timestamp,source,campaign,value,conversion_value"


def write_csv(path, now):
    def stamp(days):
        return (now - timedelta(days=days)).isoformat()

    rows = [
        HEADER,
        f"c1,t1,Display,{stamp(3)},google,spring,,120",
        f"c1,t2,email-marketing,{stamp(2)},newsletter,,,120",
        f"c1,t3,paid-search,{stamp(1)},google,spring,15.5,120",
        f"c2,u1,direct,{stamp(1)},site,,,",
        f"c3,v1,fax,{stamp(1)},site,,,",
    ]
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def journeys_csv(tmp_path):
    return write_csv(tmp_path / "touchpoints.csv", NOW)


class TestLoading:
    """Test load_journeys and journeys_from_frame."""

    def test_rows_are_grouped_into_journeys(self, journeys_csv):
        journeys = {journey.conversion_id: journey for journey in load_journeys(journeys_csv)}

        assert list(journeys) == ["c1", "c2", "c3"]
        first = journeys["c1"]
        assert [tp.id for tp in first.touchpoints] == ["t1", "t2", "t3"]
        assert [tp.channel for tp in first.touchpoints] == [
            Channel.DISPLAY,
            Channel.EMAIL_MARKETING,
            Channel.PAID_SEARCH,
        ]
        assert [tp.position for tp in first.touchpoints] == [0, 1, 2]
        assert first.touchpoints[0].metadata["campaign"] == "spring"
        assert "campaign" not in first.touchpoints[1].metadata
        assert first.touchpoints[2].value == 15.5
        assert first.touchpoints[0].value is None
        assert first.conversion_value == 120.0
        assert first.touchpoints[0].timestamp == NOW - timedelta(days=3)
        assert journeys["c2"].conversion_value == 0.0

    def test_unknown_channels_are_left_for_validation(self, journeys_csv):
        unknown = load_journeys(journeys_csv)[-1]

        assert unknown.touchpoints[0].channel == "fax"
        with pytest.raises(ValidationError, match="no known channel"):
            validate_journey(unknown, NOW)

    def test_missing_columns_are_reported(self):
        frame = pd.DataFrame({"conversion_id": ["c1"], "touchpoint_id": ["t1"], "channel": ["direct"]})

        with pytest.raises(ValueError, match="timestamp"):
            journeys_from_frame(frame)


class TestFrames:
    """Test results_frame and channel_credit."""

    def test_channel_credit_sums_weights(self, context):
        journeys = [
            three_step_journey(conversion_value=90.0),
            make_journey(make_touchpoint("solo", 1, Channel.DIRECT), conversion_id="conv-2"),
        ]
        outcome = run_batch(journeys, make_config(ModelType.LINEAR), context)

        frame = results_frame(outcome.all_results(), journeys)
        credit = channel_credit(frame)

        assert len(frame) == 4
        assert set(frame["channel"]) == {"display", "email-marketing", "paid-search", "direct"}
        assert credit.iloc[0]["channel"] == "direct"
        assert credit["attributed_conversions"].sum() == pytest.approx(2.0)
        assert credit["share"].sum() == pytest.approx(1.0)
        by_channel = credit.set_index("channel")
        assert by_channel.loc["display", "attributed_value"] == pytest.approx(30.0)
        assert by_channel.loc["direct", "touchpoints"] == 1

    def test_rejected_journey_with_unknown_channel_does_not_break_the_frame(self, context):
        fax = make_touchpoint("odd", 1, "fax")  # type: ignore[arg-type]
        broken = make_journey(fax, conversion_id="conv-bad")
        journeys = [three_step_journey(), broken]
        outcome = run_batch(journeys, make_config(ModelType.LINEAR), context)

        frame = results_frame(outcome.all_results(), journeys)

        assert isinstance(outcome.failures["conv-bad"], ValidationError)
        assert list(frame["conversion_id"].unique()) == ["conv-1"]
        assert set(frame["channel"]) == {"display", "email-marketing", "paid-search"}

    def test_empty_results(self):
        credit = channel_credit(results_frame([]))

        assert credit.empty
        assert "share" in credit.columns


class TestCreditReport:
    """Test CreditReport."""

    def test_report_summarises_successes_and_failures(self, journeys_csv, context, tmp_path):
        journeys = load_journeys(journeys_csv)
        config = make_config(ModelType.LINEAR)
        outcome = run_batch(journeys, config, context)
        report = CreditReport(journeys=journeys, outcome=outcome, config=config)

        kpis = report.build_kpis()
        assert kpis.total_journeys == 3
        assert kpis.attributed_journeys == 2
        assert kpis.failed_journeys == 1
        assert kpis.total_touchpoints == 5
        assert kpis.total_conversion_value == 120.0
        assert 0.95 <= kpis.average_confidence <= 1.0

        rows = report.build_channel_rows()
        assert rows[0].channel == "direct"
        assert rows[0].attributed_conversions == pytest.approx(1.0)

        markdown = report.to_markdown(top_n=2)
        assert markdown.startswith("# Attribution Credit Report")
        assert "Model: **linear**" in markdown
        assert "Journeys rejected: **1**" in markdown
        assert "## Rejected Journeys" in markdown
        assert "c3" in markdown
        assert markdown.count("| `") == 2

        destination = tmp_path / "out" / "report.md"
        report.write_markdown(destination)
        assert destination.read_text(encoding="utf-8") == report.to_markdown()

    def test_outcome_type_is_checked(self):
        with pytest.raises(TypeError):
            CreditReport(journeys=[], outcome={}, config=make_config(ModelType.LINEAR))


class TestCLI:
    """Test the credit-report command line."""

    def test_channel_weights_are_parsed(self, tmp_path):
        args = parse_arguments(
            [
                str(tmp_path / "in.csv"),
                "--model",
                "position-based",
                "--channel-weight",
                "paid-search=0.6",
                "--channel-weight",
                "display=0.4",
            ]
        )

        assert args.model is ModelType.POSITION_BASED
        assert args.channel_weights == {Channel.PAID_SEARCH: 0.6, Channel.DISPLAY: 0.4}

    def test_model_choices_use_their_names(self, tmp_path, capsys):
        usage = build_argument_parser().format_help()

        assert "first-touch" in usage
        assert "ModelType." not in usage
        with pytest.raises(SystemExit):
            parse_arguments([str(tmp_path / "in.csv"), "--model", "markov"])
        assert "time-decay" in capsys.readouterr().err

    def test_malformed_channel_weight_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            parse_arguments([str(tmp_path / "in.csv"), "--channel-weight", "display"])

    def test_rules_file_builds_custom_configuration(self, tmp_path):
        rules_path = tmp_path / "rules.json"
        rules_path.write_text(
            json.dumps({"opener": {"condition": "touch == first", "weight": 0.7}}),
            encoding="utf-8",
        )
        args = parse_arguments(
            [
                str(tmp_path / "in.csv"),
                "--model",
                "custom",
                "--channel-weight",
                "display=1.0",
                "--rules",
                str(rules_path),
                "--window-days",
                "14",
            ]
        )

        config = build_configuration(args, NOW)

        assert config.custom_rules["opener"].weight == 0.7
        assert load_rules(rules_path)["opener"].condition == "touch == first"
        assert config.attribution_window.span == timedelta(days=14)

    def test_main_writes_report(self, tmp_path):
        source = write_csv(tmp_path / "touchpoints.csv", datetime.now(UTC))
        output = tmp_path / "reports" / "credit.md"

        main(
            [
                str(source),
                "--output",
                str(output),
                "--model",
                "time-decay",
                "--half-life",
                "7",
                "--confidence-floor",
                "0",
            ]
        )

        markdown = output.read_text(encoding="utf-8")
        assert "time-decay (half-life 7 days)" in markdown
        assert "Journeys attributed: **2**" in markdown
        assert "`paid-search`" in markdown

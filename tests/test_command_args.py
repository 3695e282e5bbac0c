import io

import pytest

from slamopt.command_args import (
    ArgumentType,
    CommandArgs,
    CommandArgsError,
    HelpRequested,
    format_float_list,
    format_int_list,
    parse_float_list,
    parse_int_list,
)


def make_args():
    args = CommandArgs()
    args.param("input", "", "file which will be processed")
    args.param("num_iterations", 10, "Number of iterations.")
    args.param("point_sigma", 0.0, "Standard deviation of the point perturbation.")
    args.param("robustify", False, "Use a robust loss function")
    args.param("ids", [1, 2], "identifiers")
    args.param("weights", [0.5, 1.5], "weights")
    return args


def test_parse_int_list_commas():
    assert parse_int_list("1,2,3") == [1, 2, 3]


def test_parse_int_list_any_single_separator():
    assert parse_int_list("4;5x6") == [4, 5, 6]


def test_parse_int_list_stops_at_double_separator():
    assert parse_int_list("1,,2") == [1]


def test_parse_int_list_uses_first_token_only():
    assert parse_int_list("7,8 9") == [7, 8]


def test_parse_int_list_no_digits_is_empty():
    assert parse_int_list("abc") == []


def test_parse_int_list_empty_text_raises():
    with pytest.raises(ValueError):
        parse_int_list("   ")


def test_parse_float_list_values():
    assert parse_float_list("0.5;1e3,-2") == [0.5, 1000.0, -2.0]


def test_int_list_round_trip():
    values = [3, -1, 42]
    assert parse_int_list(format_int_list(values)) == values


def test_float_list_round_trip():
    values = [0.25, -3.5, 100.0]
    assert parse_float_list(format_float_list(values)) == values


def test_format_separators():
    assert format_int_list([1, 2]) == "1,2"
    assert format_float_list([0.5, 2.0]) == "0.5;2"


def test_defaults_are_available_before_parsing():
    args = make_args()
    assert args["num_iterations"] == 10
    assert args["robustify"] is False
    assert args["ids"] == [1, 2]
    assert args.parsed_param("num_iterations") is False


def test_parse_typed_values():
    args = make_args()
    args.parse_args(
        ["prog", "-input", "data.txt", "-num_iterations", "30", "--point_sigma", "0.25",
         "-ids", "4,5", "-weights", "2;3.5"]
    )
    assert args["input"] == "data.txt"
    assert args["num_iterations"] == 30
    assert args["point_sigma"] == 0.25
    assert args["ids"] == [4, 5]
    assert args["weights"] == [2.0, 3.5]
    assert args.parsed_param("input") is True
    assert args.parsed_param("robustify") is False


def test_bool_toggles_once():
    args = make_args()
    args.parse_args(["prog", "-robustify", "-robustify"])
    assert args["robustify"] is True
    assert args.parsed_param("robustify") is True


def test_bool_default_true_is_toggled_off():
    args = CommandArgs()
    args.param("verbose", True, "talk")
    args.parse_args(["prog", "-verbose"])
    assert args["verbose"] is False


def test_bad_value_keeps_default_but_marks_parsed():
    args = make_args()
    args.parse_args(["prog", "-num_iterations", "many"])
    assert args["num_iterations"] == 10
    assert args.parsed_param("num_iterations") is True


def test_int_reads_leading_digits():
    args = make_args()
    args.parse_args(["prog", "-num_iterations", "12abc"])
    assert args["num_iterations"] == 12


def test_unknown_option_raises():
    args = make_args()
    with pytest.raises(CommandArgsError, match="Unknown Option 'bogus'"):
        args.parse_args(["prog", "-bogus"])


def test_missing_value_raises_with_help():
    args = make_args()
    with pytest.raises(CommandArgsError) as info:
        args.parse_args(["prog", "-num_iterations"])
    assert "needs value" in str(info.value)
    assert "Usage: prog" in info.value.help_text


def test_help_requested():
    args = make_args()
    with pytest.raises(HelpRequested) as info:
        args.parse_args(["prog", "-h"])
    assert "-help / -h           Displays this help." in info.value.help_text


def test_left_overs_filled_in_order():
    args = CommandArgs()
    args.param("n", 1, "count")
    args.param_left_over("input", "", "input file")
    args.param_left_over("output", "out.txt", "output file", optional=True)
    args.parse_args(["prog", "-n", "5", "a.txt", "b.txt"])
    assert args["n"] == 5
    assert args["input"] == "a.txt"
    assert args["output"] == "b.txt"


def test_optional_left_over_keeps_default():
    args = CommandArgs()
    args.param_left_over("input", "", "input file")
    args.param_left_over("output", "out.txt", "output file", optional=True)
    args.parse_args(["prog", "a.txt"])
    assert args["output"] == "out.txt"


def test_required_left_over_missing_raises():
    args = CommandArgs()
    args.param_left_over("input", "", "input file")
    with pytest.raises(CommandArgsError, match="requires parameters"):
        args.parse_args(["prog"])


def test_double_dash_ends_options():
    args = CommandArgs()
    args.param("flag", False, "a flag")
    args.param_left_over("input", "", "input file")
    args.parse_args(["prog", "--", "-flag"])
    assert args["input"] == "-flag"
    assert args["flag"] is False


def test_non_dash_argument_ends_options():
    args = CommandArgs()
    args.param("flag", False, "a flag")
    args.param_left_over("input", "", "input file")
    args.parse_args(["prog", "file", "-flag"])
    assert args["input"] == "file"
    assert args.parsed_param("flag") is False


def test_empty_list_default_needs_kind():
    args = CommandArgs()
    with pytest.raises(TypeError):
        args.param("values", [], "values")
    args.param("values", [], "values", ArgumentType.VECTOR_INT)
    args.parse_args(["prog", "-values", "9,8"])
    assert args["values"] == [9, 8]


def test_float_kind_is_single_precision():
    args = CommandArgs()
    args.param("f", 0.1, "single", ArgumentType.FLOAT)
    assert abs(args["f"] - 0.1) < 1e-7
    assert args["f"] != 0.1


def test_unknown_name_lookup():
    args = make_args()
    with pytest.raises(KeyError):
        args["missing"]
    assert args.parsed_param("missing") is False


def test_help_text_layout():
    args = make_args()
    args.param_left_over("dataset", "", "data")
    args.param_left_over("extra", "", "more", optional=True)
    args.parse_args(["prog", "x"])
    text = args.help_text()
    lines = text.splitlines()
    assert lines[0] == "Usage: prog [options] dataset [extra]"
    start = lines.index("Program Options:") + 2
    table = lines[start:]
    assert len(table) == 6
    labels = [line[1:].split("  ")[0] for line in table]
    assert labels == sorted(labels)
    columns = {len(line) - len(line[1:].split("  ", 1)[1].lstrip()) for line in table}
    assert len(columns) == 1
    assert "-num_iterations <int>" in text
    assert "(default: 10)" in text
    assert "(default: 1,2)" in text
    assert "(default: 0.5;1.5)" in text
    assert "-input <string>" in text and "(default: )" not in text


def test_print_help_writes_help_text():
    args = make_args()
    stream = io.StringIO()
    args.print_help(stream)
    assert stream.getvalue() == args.help_text()
    assert "Program Options:" in stream.getvalue()
from kawaii_narrator.stream import extract_segments, strip_ansi

NOTICE = "他に{remaining}個のメッセージがあるが、負荷対策で省略したぞ"


def test_segments_in_order():
    text = "⏺ 前置き『一つ目だ』中略『二つ目！』後書き"
    assert extract_segments(text) == ["一つ目だ", "二つ目！"]


def test_text_outside_quotes_is_ignored():
    assert extract_segments("⏺ ファイルを編集しました") == []
    assert extract_segments("") == []


def test_unbalanced_and_empty_quotes_are_ignored():
    assert extract_segments("『閉じてない") == []
    assert extract_segments("開いてない』") == []
    assert extract_segments("『』『   』『本物』") == ["本物"]
    assert extract_segments("『外『内側』") == ["内側"]


def test_segments_span_lines():
    assert extract_segments("『一行目\n二行目』") == ["一行目\n二行目"]


def test_overflow_replaced_by_notice():
    text = "".join(f"『{i}番』" for i in range(13))
    segments = extract_segments(text, max_segments=10, overflow_notice=NOTICE)
    assert len(segments) == 11
    assert segments[:10] == [f"{i}番" for i in range(10)]
    assert segments[-1] == "他に3個のメッセージがあるが、負荷対策で省略したぞ"


def test_no_limit_keeps_everything():
    text = "".join(f"『{i}』" for i in range(20))
    assert len(extract_segments(text)) == 20


def test_strip_ansi():
    assert strip_ansi("\x1b[1;31mred\x1b[0m") == "red"
    assert strip_ansi("\x1b]0;title\x07body") == "body"
    assert strip_ansi("line\r\n") == "line\n"
    assert strip_ansi("") == ""

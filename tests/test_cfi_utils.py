import random

import pytest

from cfi_ranges.utils.cfi_utils import (
    BlockRoot,
    generate_cfi_range,
    get_parent_cfi,
    group_segments_by_root,
    is_same_branch,
    parse_cfi_range,
    preprocess_block_roots,
    strip_cfi_wrapper,
)


# --- parse_cfi_range ---

def test_parse_valid_range():
    parsed = parse_cfi_range('epubcfi(/6/14!/4/2/1,:0,:10)')
    assert parsed is not None
    assert parsed.parent == '/6/14!/4/2/1'
    assert parsed.start == ':0'
    assert parsed.end == ':10'
    assert parsed.raw_start == '/6/14!/4/2/1:0'
    assert parsed.raw_end == '/6/14!/4/2/1:10'
    assert parsed.full_start == 'epubcfi(/6/14!/4/2/1:0)'
    assert parsed.full_end == 'epubcfi(/6/14!/4/2/1:10)'


def test_parse_handles_larger_offsets():
    parsed = parse_cfi_range('epubcfi(/6/14!/4/2/1,:100,:200)')
    assert parsed.start == ':100'
    assert parsed.end == ':200'


@pytest.mark.parametrize("value", [
    'invalid',
    'epubcfi(/a,/b)',
    'epubcfi(/6/4!/2/1:0)',
    'epubcfi(/a,/b,/c,/d)',
    '/6/4!/2,:0,:1',
    'epubcfi(/6/4!/2,:0,:1',
    '',
    None,
    42,
])
def test_parse_rejects_malformed_input(value):
    assert parse_cfi_range(value) is None


def test_parse_comma_inside_assertion_is_not_supported():
    # Naive comma split: a label holding a comma gives five segments
    assert parse_cfi_range('epubcfi(/6/4[a,b]!/2,/1:0,/1:5)') is None


def test_parse_survives_random_strings():
    rng = random.Random(1234)
    alphabet = 'ABCabc0123456789!@#$%^&*()_+[]{}|;:,.<>?/epubcfi'
    for _ in range(1000):
        text = ''.join(rng.choice(alphabet) for _ in range(rng.randint(0, 50)))
        result = parse_cfi_range(text)
        assert result is None or result.full_start.startswith('epubcfi(')


# --- generate_cfi_range ---

def test_generate_from_two_points():
    start = 'epubcfi(/6/14!/4/2/1:0)'
    end = 'epubcfi(/6/14!/4/2/1:10)'
    assert generate_cfi_range(start, end) == 'epubcfi(/6/14!/4/2/1,:0,:10)'


def test_generate_with_assertions():
    start = 'epubcfi(/6/14!/4[id]/2/1:0)'
    end = 'epubcfi(/6/14!/4[id]/2/1:10)'
    assert generate_cfi_range(start, end) == 'epubcfi(/6/14!/4[id]/2/1,:0,:10)'


def test_generate_accepts_unwrapped_points():
    assert generate_cfi_range('/6/4!/2/1:3', '/6/4!/2/1:8') == 'epubcfi(/6/4!/2/1,:3,:8)'


def test_generate_never_splits_inside_a_step():
    # "/10" and "/12" share "/1" but the split must fall on the slash
    result = generate_cfi_range('epubcfi(/6/4!/10/1:0)', 'epubcfi(/6/4!/12/1:0)')
    assert result == 'epubcfi(/6/4!,/10/1:0,/12/1:0)'


def test_generate_backtracks_when_one_point_is_prefix():
    result = generate_cfi_range('epubcfi(/6/4!/2/1:1)', 'epubcfi(/6/4!/2/1:10)')
    assert result == 'epubcfi(/6/4!/2/1,:1,:10)'


def test_generate_across_elements():
    result = generate_cfi_range('epubcfi(/6/4!/4/2/1:0)', 'epubcfi(/6/4!/4/6/1:12)')
    assert result == 'epubcfi(/6/4!/4,/2/1:0,/6/1:12)'


def test_generate_identical_points_gives_degenerate_range():
    point = 'epubcfi(/6/14!/4/2/1:7)'
    result = generate_cfi_range(point, point)
    assert result == 'epubcfi(/6/14!/4/2/1:7,,)'

    parsed = parse_cfi_range(result)
    assert parsed.full_start == point
    assert parsed.full_end == point


def test_point_round_trip_over_random_paths():
    rng = random.Random(99)
    for _ in range(500):
        steps = ''.join(
            f"/{rng.randint(1, 40)}" + (f"[id{rng.randint(1, 99)}]" if rng.random() > 0.8 else '')
            for _ in range(rng.randint(1, 6))
        )
        point = f"epubcfi(/6/{rng.randint(2, 60)}!{steps}:{rng.randint(0, 500)})"
        parsed = parse_cfi_range(generate_cfi_range(point, point))
        assert parsed.full_start == point
        assert parsed.full_end == point


def test_generated_range_parses_back_to_its_end_points():
    start = 'epubcfi(/6/14[chap01]!/4/2[p1]/3:5)'
    end = 'epubcfi(/6/14[chap01]!/4/8/1:0)'
    parsed = parse_cfi_range(generate_cfi_range(start, end))
    assert parsed.full_start == start
    assert parsed.full_end == end


# --- branch helpers ---

def test_strip_wrapper():
    assert strip_cfi_wrapper('epubcfi(/6/4!/2:0)') == '/6/4!/2:0'
    assert strip_cfi_wrapper('/6/4!/2:0') == '/6/4!/2:0'


def test_is_same_branch():
    assert is_same_branch('epubcfi(/6/4!/4/2)', 'epubcfi(/6/4!/4/2/1:0)')
    assert is_same_branch('epubcfi(/6/4!/4/2/1:0)', 'epubcfi(/6/4!/4/2)')
    assert is_same_branch('epubcfi(/6/4!/4/2)', 'epubcfi(/6/4!/4/2)')
    assert not is_same_branch('epubcfi(/6/4!/4/2)', 'epubcfi(/6/4!/4/20)')
    assert not is_same_branch('epubcfi(/6/4!/4/2)', 'epubcfi(/6/4!/4/4)')
    assert not is_same_branch('', 'epubcfi(/6/4!/4/2)')
    assert not is_same_branch(None, 'epubcfi(/6/4!/4/2)')


def test_get_parent_cfi_drops_offset_and_text_step():
    assert get_parent_cfi('epubcfi(/6/14!/4/2/1:0)') == 'epubcfi(/6/14!/4/2)'


def test_get_parent_cfi_uses_range_start():
    assert get_parent_cfi('epubcfi(/6/14!/4/2,/1:0,/3:5)') == 'epubcfi(/6/14!/4/2)'


def test_get_parent_cfi_never_crosses_indirection():
    assert get_parent_cfi('epubcfi(/6/14!/4:0)') == 'epubcfi(/6/14!)'
    assert get_parent_cfi('epubcfi(/6/14!)') == 'epubcfi(/6/14!)'


def test_get_parent_cfi_prefers_known_table_root():
    table = 'epubcfi(/6/14!/4/10)'
    cell_text = 'epubcfi(/6/14!/4/10/2/4/2/1:3)'
    assert get_parent_cfi(cell_text, [table]) == table
    # Sibling "/100" is not inside table "/10"
    assert get_parent_cfi('epubcfi(/6/14!/4/100/1:0)', [table]) == 'epubcfi(/6/14!/4/100)'


def test_get_parent_cfi_returns_strings_for_garbage():
    assert get_parent_cfi('not a cfi') == 'not a cfi'
    assert get_parent_cfi('') == ''
    assert get_parent_cfi(None) == ''

    rng = random.Random(7)
    alphabet = 'abc0123456789!/:,()[]epubcfi'
    for _ in range(1000):
        text = ''.join(rng.choice(alphabet) for _ in range(rng.randint(0, 50)))
        assert isinstance(get_parent_cfi(text), str)


def test_get_parent_cfi_deep_paths():
    rng = random.Random(11)
    for _ in range(100):
        path = 'epubcfi(/6/2!' + ''.join(f"/{rng.randint(0, 9)}" for _ in range(rng.randint(0, 20))) + ')'
        assert isinstance(get_parent_cfi(path), str)


def test_preprocess_block_roots_sorts_deepest_first():
    roots = preprocess_block_roots([
        'epubcfi(/6/4!/4/2)',
        'epubcfi(/6/4!/4/2/8,/1:0,/3:4)',
        '',
        None,
    ])
    assert roots == [
        BlockRoot(cfi='epubcfi(/6/4!/4/2/8)', base='/6/4!/4/2/8'),
        BlockRoot(cfi='epubcfi(/6/4!/4/2)', base='/6/4!/4/2'),
    ]


def test_group_segments_by_root():
    segments = [
        {'text': 'First sentence', 'cfi': 'epubcfi(/6/4!/4/2,/1:0,/1:14)'},
        {'text': 'Second sentence', 'cfi': 'epubcfi(/6/4!/4/2,/1:15,/1:30)'},
        {'text': 'Cell one', 'cfi': 'epubcfi(/6/4!/4/6/2/2/2,/1:0,/1:8)'},
        {'text': 'Cell two', 'cfi': 'epubcfi(/6/4!/4/6/2/4/2,/1:0,/1:8)'},
        {'text': 'After table', 'cfi': 'epubcfi(/6/4!/4/8,/1:0,/1:11)'},
    ]

    groups = group_segments_by_root(segments, ['epubcfi(/6/4!/4/6)'])

    assert len(groups) == 3
    assert groups[0]['root_cfi'] == 'epubcfi(/6/4!/4/2/1,:0,:30)'
    assert groups[0]['full_text'] == 'First sentence. Second sentence. '
    assert [s['text'] for s in groups[1]['segments']] == ['Cell one', 'Cell two']
    assert groups[1]['root_cfi'] == 'epubcfi(/6/4!/4/6/2,/2/2/1:0,/4/2/1:8)'
    assert groups[2]['root_cfi'] == 'epubcfi(/6/4!/4/8/1,:0,:11)'


def test_group_segments_empty():
    assert group_segments_by_root([]) == []

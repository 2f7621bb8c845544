import pytest

from autocaptcha_core.detection import CandidateScanner, DetectionVocabulary, ImageKind, find_label, pair, scan
from autocaptcha_core.dom.snapshot import PageSnapshot


def _root(children):
    return PageSnapshot.from_dict({"tag": "body", "children": children}).root


def _by_id(root, element_id):
    return next(el for el in root.iter() if el.id == element_id)


def test_login_page_finds_keyword_image_and_input(login_snapshot):
    result = scan(login_snapshot.root, generation=7)

    assert [c.element.id for c in result.images] == ["vcode-img"]
    assert result.images[0].kind == ImageKind.RASTER_IMAGE
    assert result.images[0].reason == "keyword:captcha"
    assert (result.images[0].width, result.images[0].height) == (120.0, 40.0)

    assert [c.element.id for c in result.inputs] == ["vcode-input"]
    assert result.inputs[0].reason.startswith("keyword:")
    assert result.generation == 7
    assert all(c.generation == 7 for c in result.images + result.inputs)


def test_unlabelled_image_qualifies_by_size_and_proximity():
    root = _root([
        {"tag": "img", "attrs": {"id": "pic", "src": "/gen?id=9"},
         "rect": {"x": 10, "y": 10, "width": 100, "height": 40}, "naturalWidth": 100, "naturalHeight": 40},
        {"tag": "input", "attrs": {"type": "text"}, "rect": {"x": 120, "y": 10, "width": 100, "height": 30}},
    ])
    result = scan(root)
    assert len(result.images) == 1
    assert result.images[0].reason == "size+proximity"


def test_unlabelled_image_too_far_from_inputs_is_ignored():
    root = _root([
        {"tag": "img", "attrs": {"src": "/gen?id=9"},
         "rect": {"x": 0, "y": 0, "width": 100, "height": 40}, "naturalWidth": 100, "naturalHeight": 40},
        {"tag": "input", "attrs": {"type": "text"}, "rect": {"x": 400, "y": 0, "width": 100, "height": 30}},
    ])
    assert scan(root).images == []


def test_unlabelled_image_outside_size_envelope_is_ignored():
    root = _root([
        {"tag": "img", "attrs": {"src": "/banner.png"},
         "rect": {"x": 0, "y": 0, "width": 600, "height": 40}, "naturalWidth": 600, "naturalHeight": 40},
        {"tag": "input", "attrs": {"type": "text"}, "rect": {"x": 10, "y": 50, "width": 100, "height": 30}},
    ])
    assert scan(root).images == []


def test_canvas_and_background_kinds():
    root = _root([
        {"tag": "canvas", "attrs": {"id": "captchaCanvas"}, "rect": {"x": 0, "y": 0, "width": 120, "height": 40}},
        {"tag": "div", "attrs": {"class": "code-box"}, "backgroundImage": 'url("https://x/bg.png")',
         "rect": {"x": 0, "y": 50, "width": 120, "height": 40}},
    ])
    kinds = {c.element.tag: c.kind for c in scan(root).images}
    assert kinds == {"canvas": ImageKind.CANVAS_SURFACE, "div": ImageKind.STYLED_BACKGROUND}


def test_body_background_is_not_a_candidate():
    root = PageSnapshot.from_dict({
        "tag": "body", "attrs": {"class": "captcha"}, "backgroundImage": "url(bg.png)",
        "rect": {"x": 0, "y": 0, "width": 120, "height": 40},
    }).root
    assert scan(root).images == []


def test_input_classified_by_placeholder():
    root = _root([{"tag": "input", "attrs": {"placeholder": "请输入验证码"}}])
    result = scan(root)
    assert result.inputs[0].reason == "placeholder:验证码"


def test_input_classified_by_label_for():
    root = _root([
        {"tag": "label", "attrs": {"for": "f1"}, "text": "Security code"},
        {"tag": "div", "children": [{"tag": "input", "attrs": {"id": "f1", "type": "text"}}]},
    ])
    result = scan(root)
    assert len(result.inputs) == 1
    assert result.inputs[0].label_text == "Security code"
    assert result.inputs[0].reason == "label:code"


def test_find_label_in_ancestor():
    root = _root([
        {"tag": "div", "children": [
            {"tag": "span", "children": [{"tag": "label", "text": "Code"}]},
            {"tag": "div", "children": [{"tag": "input", "attrs": {"id": "x"}}]},
        ]},
    ])
    label = find_label(_by_id(root, "x"))
    assert label is not None and label.text == "Code"


def test_non_text_inputs_are_never_candidates():
    root = _root([
        {"tag": "input", "attrs": {"type": "password", "name": "captcha"}},
        {"tag": "input", "attrs": {"type": "hidden", "name": "captcha_token"}},
        {"tag": "textarea", "attrs": {"name": "captcha"}},
    ])
    assert scan(root).inputs == []


def test_custom_vocabulary():
    vocabulary = DetectionVocabulary(image_keywords=("puzzle",), input_keywords=("answer",), placeholders=())
    root = _root([
        {"tag": "img", "attrs": {"id": "puzzle"}, "rect": {"x": 0, "y": 0, "width": 900, "height": 900}},
        {"tag": "input", "attrs": {"name": "answer"}},
        {"tag": "input", "attrs": {"name": "captcha"}},
    ])
    result = CandidateScanner(vocabulary).scan(root)
    assert [c.element.id for c in result.images] == ["puzzle"]
    assert [c.element.get("name") for c in result.inputs] == ["answer"]


def test_keyword_match_is_case_insensitive_substring():
    root = _root([{"tag": "img", "attrs": {"class": "captchaImg"}, "rect": {"x": 0, "y": 0, "width": 900, "height": 900}}])
    assert [c.reason for c in scan(root).images] == ["keyword:captcha"]


def test_empty_page_yields_empty_results():
    root = _root([{"tag": "p", "text": "Hello"}, {"tag": "input", "attrs": {"type": "checkbox"}}])
    result = scan(root)
    assert result.empty
    assert result.images == [] and result.inputs == []
    assert pair(result.images, result.inputs) == []


@pytest.mark.parametrize("size", ["Infinity", "1e999", "NaN", "-inf"])
def test_non_finite_size_attributes_fall_back_to_rect(size):
    root = _root([
        {"tag": "img", "attrs": {"id": "vcode-img", "width": size, "height": size},
         "rect": {"x": 100, "y": 200, "width": 120, "height": 40}, "naturalWidth": 0, "naturalHeight": 0},
        {"tag": "input", "attrs": {"type": "text", "name": "vcode"},
         "rect": {"x": 180, "y": 200, "width": 100, "height": 30}},
    ])
    result = scan(root)
    assert [c.element.id for c in result.images] == ["vcode-img"]
    assert (result.images[0].width, result.images[0].height) == (120.0, 40.0)
    assert len(pair(result.images, result.inputs)) == 1

from autocaptcha_core.detection import (
    MAX_PAIR_DISTANCE,
    CandidateImage,
    CandidateInput,
    ImageKind,
    pair,
    pair_exclusive,
)
from autocaptcha_core.dom.snapshot import DomElement, Rect


def _image(x, y, generation=1, name="img"):
    el = DomElement(tag="img", attrs={"id": name}, rect=Rect(x, y, 100, 40))
    return CandidateImage(el, ImageKind.RASTER_IMAGE, name, 100, 40, "keyword:captcha", generation)


def _input(x, y, generation=1, name="inp"):
    el = DomElement(tag="input", attrs={"id": name}, rect=Rect(x, y, 100, 30))
    return CandidateInput(el, name, "", "keyword:code", generation)


def test_pairs_sorted_and_ranked_by_distance():
    near_img, far_img = _image(0, 0, name="near"), _image(0, 300, name="far")
    inp = _input(0, 50)
    pairs = pair([far_img, near_img], [inp])

    assert [p.image for p in pairs] == [near_img, far_img]
    assert [p.rank for p in pairs] == [0, 1]
    assert pairs[0].distance == 50
    assert pairs[1].distance == 250


def test_each_image_takes_its_nearest_input():
    img = _image(0, 0)
    close, distant = _input(30, 40, name="close"), _input(300, 0, name="distant")
    pairs = pair([img], [distant, close])
    assert len(pairs) == 1
    assert pairs[0].input is close
    assert pairs[0].distance == 50


def test_inputs_may_be_shared_by_several_images():
    a, b = _image(0, 0, name="a"), _image(0, 100, name="b")
    inp = _input(0, 40)
    pairs = pair([a, b], [inp])
    assert len(pairs) == 2
    assert all(p.input is inp for p in pairs)


def test_pairs_at_or_beyond_max_distance_are_dropped():
    img = _image(0, 0)
    assert pair([img], [_input(MAX_PAIR_DISTANCE, 0)]) == []
    assert len(pair([img], [_input(MAX_PAIR_DISTANCE - 1, 0)])) == 1


def test_candidates_from_different_generations_never_pair():
    img = _image(0, 0, generation=1)
    stale = _input(10, 0, generation=2)
    assert pair([img], [stale]) == []
    assert pair_exclusive([img], [stale]) == []


def test_exclusive_pairing_uses_each_input_once():
    a, b = _image(0, 0, name="a"), _image(0, 100, name="b")
    first, second = _input(0, 40, name="first"), _input(0, 200, name="second")
    pairs = pair_exclusive([a, b], [first, second])

    assert len(pairs) == 2
    assert pairs[0].image is a and pairs[0].input is first
    assert pairs[1].image is b and pairs[1].input is second
    # Best pair agrees with the nearest-input strategy
    assert pair([a, b], [first, second])[0].image is a


def test_to_dict_shape():
    d = pair([_image(0, 0, name="vcode")], [_input(3, 4, name="answer")])[0].to_dict()
    assert d == {
        "rank": 0,
        "distance": 5.0,
        "imageSelector": "#vcode",
        "inputSelector": "#answer",
        "imageKind": "raster-image",
        "imageReason": "keyword:captcha",
        "inputReason": "keyword:code",
    }

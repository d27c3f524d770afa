from vlab.src.utils.text_utils import clean_text, find_image_references, list_image_paths, match_images, normalize_image_links


def test_clean_text_strips_invisible_characters_and_collapses_whitespace():
    raw = "\ufeffObjective:\u200b  verify   Ohm's law\r\n\n\n\n\tStep 1"
    assert clean_text(raw) == "Objective: verify Ohm's law\n\nStep 1"


def test_find_image_references_dedupes_and_prefixes_slash():
    text = "Symbol: images/Capacitor.png. See /images/Capacitor.png and images/setup.jpg"
    assert find_image_references(text) == ["/images/Capacitor.png", "/images/setup.jpg"]


def test_find_image_references_ignores_foreign_paths():
    assert find_image_references("static/images/x.png and myimages/y.png") == []


def test_normalize_labelled_reference():
    assert normalize_image_links("Symbol: images/Capacitor.png.") == "Symbol: ![](/images/Capacitor.png)."


def test_normalize_bare_reference():
    assert normalize_image_links("as in images/setup.jpg") == "as in ![](/images/setup.jpg)"


def test_normalize_leaves_existing_embeds_alone():
    text = "Here: ![](/images/setup.jpg)"
    assert normalize_image_links(text) == text


def test_normalize_reference_at_line_start():
    assert normalize_image_links("/images/a.png\nnext") == "![](/images/a.png)\nnext"


def test_normalize_empty():
    assert normalize_image_links("") == ""


def test_match_images_on_whole_phrase():
    available = ["/images/Variable_Resistor.png", "/images/Capacitor.png", "/images/ic.png"]
    assert match_images("Show the variable resistor symbol", available) == ["/images/Variable_Resistor.png"]
    assert match_images("what do capacitors store?", available) == ["/images/Capacitor.png"]


def test_match_images_requires_word_boundaries():
    assert match_images("Explain the circuit", ["/images/ic.png", "/images/Circuit.png"]) == ["/images/Circuit.png"]
    assert match_images("resistors in series", ["/images/sistor.png"]) == []


def test_list_image_paths(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "a.png").write_bytes(b"x")
    (tmp_path / "sub" / "b.JPG").write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("x")
    assert list_image_paths(tmp_path) == ["/images/a.png", "/images/sub/b.JPG"]


def test_list_image_paths_missing_dir(tmp_path):
    assert list_image_paths(tmp_path / "nope") == []

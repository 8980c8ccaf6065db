from pathlib import Path

from conftest import make_exam, make_question
from quizbank.schemas.catalog import CategoryRef, Explanation
from quizbank.services.catalog_loader import (
    CatalogService, exam_ids_for_category, load_exam_catalog, normalize_category,
    question_count_for_category, question_count_for_exam
)


def test_normalize_category_from_string() -> None:
    assert normalize_category(" AWS Services ") == CategoryRef(id="aws_services", name="AWS Services")


def test_normalize_category_defaults() -> None:
    default = CategoryRef(id="uncategorized", name="その他")
    assert normalize_category(None) == default
    assert normalize_category("") == default
    assert normalize_category("   ") == default
    assert normalize_category({}) == default
    assert normalize_category(123) == default


def test_normalize_category_from_mapping() -> None:
    assert normalize_category({"id": " My Id ", "name": "Mine"}) == CategoryRef(id="my_id", name="Mine")
    assert normalize_category({"name": "Cloud"}) == CategoryRef(id="cloud", name="Cloud")
    assert normalize_category({"title": "Title", "label": "Label"}) == CategoryRef(id="title", name="Title")
    assert normalize_category({"label": "Label"}) == CategoryRef(id="label", name="Label")
    assert normalize_category({"id": "aws"}) == CategoryRef(id="aws", name="aws")


def test_normalize_category_is_idempotent() -> None:
    for raw in [" AWS Services ", {"name": "Cloud Ops"}, {"id": "X-Ray", "title": "X Ray"}, None]:
        category = normalize_category(raw)
        again = normalize_category({"id": category.id, "name": category.name})
        assert again == category


def test_malformed_questions_are_skipped_with_one_diagnostic(write_exam) -> None:
    path = write_exam("sample.json", make_exam(
        {"id": "sample", "title": "Sample"},
        [
            make_question("First", "A"),
            make_question("   ", "A"),
            make_question("Third", "E", choices=[
                {"key": "A", "text": "a"}, {"key": "B", "text": "b"}, {"key": "C", "text": "c"}
            ]),
            make_question("Fourth", "B"),
            make_question("Fifth", ["C", "D"]),
        ],
    ))

    catalog = load_exam_catalog(path.parent)

    exam = catalog.exams["sample"]
    assert [question.id for question in exam.questions] == ["sample-q1", "sample-q4", "sample-q5"]
    assert exam.meta.question_count == 3
    assert catalog.errors == ["sample.json で 2 問が読み込めませんでした。（問題ID: sample-q2, sample-q3）"]


def test_question_rejections(write_exam) -> None:
    path = write_exam("rules.json", make_exam(
        {"id": "rules"},
        [
            make_question("ok", "A", id="ok"),
            "not an object",
            make_question("no choices", "A", choices=[], id="no-choices"),
            make_question("one choice", "A", choices=["only"], id="one-choice"),
            make_question("empty answer", "", id="empty-answer"),
            {"question": "missing answer", "choices": ["a", "b"], "id": "missing-answer"},
        ],
    ))

    catalog = load_exam_catalog(path.parent)

    assert [question.id for question in catalog.exams["rules"].questions] == ["ok"]
    assert catalog.errors == [
        "rules.json で 5 問が読み込めませんでした。"
        "（問題ID: rules-q2, no-choices, one-choice, empty-answer, missing-answer）"
    ]


def test_choice_keys_are_assigned_and_deduplicated(write_exam) -> None:
    path = write_exam("keys.json", make_exam(
        {"id": "keys"},
        [make_question(
            "Keys",
            ["A2", "C"],
            choices=[{"key": "A", "text": "x"}, {"key": "A", "text": "y"}, "z", {"text": "   "}, 7],
        )],
    ))

    question = load_exam_catalog(path.parent).exams["keys"].questions[0]

    assert [choice.key for choice in question.choices] == ["A", "A2", "C", "D"]
    assert [choice.text for choice in question.choices] == ["x", "y", "z", "7"]
    assert question.answers == ["A2", "C"]
    assert question.is_multiple_answer


def test_scalar_choice_values_are_stringified(write_exam) -> None:
    path = write_exam("scalars.json", make_exam(
        {"id": "scalars"},
        [make_question("Scalars", 2, choices=[{"key": 1.0, "text": True}, {"key": 2, "text": 2.0}])],
    ))

    question = load_exam_catalog(path.parent).exams["scalars"].questions[0]

    assert [choice.key for choice in question.choices] == ["1", "2"]
    assert [choice.text for choice in question.choices] == ["1", "2"]
    assert question.answers == ["2"]


def test_choice_explanations_resolution(write_exam) -> None:
    path = write_exam("explain.json", make_exam(
        {"id": "explain"},
        [make_question(
            "Explain",
            "A",
            choices=[
                {"key": "A", "text": "a", "explanation": "direct"},
                {"key": "B", "text": "b", "reference": "https://ref", "reference_label": "Ref"},
                {"key": "C", "text": "c"},
                {"key": "D", "text": "d"},
            ],
            choice_explanations={"C": {"text": "from map"}, "A": "ignored"},
            explanation={"text": "question level"},
        )],
    ))

    question = load_exam_catalog(path.parent).exams["explain"].questions[0]
    explanations = {choice.key: choice.explanation for choice in question.choices}

    assert explanations["A"] == Explanation(text="direct")
    assert explanations["B"] == Explanation(reference="https://ref", reference_label="Ref")
    assert explanations["C"] == Explanation(text="from map")
    assert explanations["D"] == Explanation()
    assert question.explanation.text == "question level"
    assert not question.is_multiple_answer


def test_answers_take_precedence_over_answer(write_exam) -> None:
    path = write_exam("precedence.json", make_exam(
        {"id": "precedence"},
        [make_question("Both", "A", answers=["D", "B"])],
    ))

    question = load_exam_catalog(path.parent).exams["precedence"].questions[0]
    assert question.answers == ["B", "D"]


def test_file_level_diagnostics(write_exam) -> None:
    write_exam("broken.json", "{not json")
    write_exam("list.json", "[1, 2]")
    write_exam("scalar.json", "42")
    write_exam("no-questions.json", {"exam": {"id": "x"}})
    write_exam("empty.json", make_exam({"id": "empty"}, [make_question("", "A")]))
    path = write_exam("good.json", make_exam({"id": "good"}, [make_question("Fine", "A")]))

    catalog = load_exam_catalog(path.parent)

    assert list(catalog.exams) == ["good"]
    errors = catalog.errors
    assert any(error.startswith("broken.json のJSON形式が不正です。") for error in errors)
    assert "list.json に exam セクションが見つかりません。" in errors
    assert any(error.startswith("scalar.json のJSON形式が不正です。") for error in errors)
    assert "no-questions.json に questions セクションが見つかりません。" in errors
    assert "empty.json に有効な問題がありません。" in errors


def test_missing_directory(tmp_path: Path) -> None:
    catalog = load_exam_catalog(tmp_path / "missing")
    assert catalog.exams == {}
    assert catalog.categories == {}
    assert catalog.errors == ["問題データディレクトリが見つかりません。"]


def test_duplicate_exam_id_keeps_first_file_in_natural_order(write_exam) -> None:
    write_exam("exam10.json", make_exam({"id": "dup", "title": "Ten"}, [make_question("q", "A")]))
    path = write_exam("exam2.json", make_exam({"id": "dup", "title": "Two"}, [make_question("q", "A")]))

    catalog = load_exam_catalog(path.parent)

    assert catalog.exams["dup"].meta.title == "Two"
    assert catalog.exams["dup"].meta.source_file == "exam2.json"
    assert catalog.errors == ['試験ID "dup" が重複しています。（exam10.json）']


def test_exam_id_and_title_fallbacks(write_exam) -> None:
    path = write_exam("from-stem.json", make_exam({"title": ""}, [make_question("q", "A")]))

    exam = load_exam_catalog(path.parent).exams["from-stem"]

    assert exam.meta.title == "from-stem"
    assert exam.meta.description == ""
    assert exam.meta.version == ""
    assert exam.meta.category == CategoryRef(id="uncategorized", name="その他")


def test_sorting_and_category_aggregation(write_exam) -> None:
    write_exam("a.json", make_exam({"id": "g", "title": "gamma", "category": "Zeta"}, [make_question("q", "A")]))
    write_exam("b.json", make_exam({"id": "a", "title": "Alpha", "category": "zeta"}, [make_question("q", "A")]))
    path = write_exam("c.json", make_exam({"id": "b", "title": "beta", "category": "Eta"}, [make_question("q", "A")]))

    catalog = load_exam_catalog(path.parent)

    assert list(catalog.exams) == ["a", "b", "g"]
    assert list(catalog.categories) == ["eta", "zeta"]
    assert catalog.categories["zeta"].name == "Zeta"
    assert catalog.categories["zeta"].exam_ids == ["a", "g"]
    assert catalog.errors == ['カテゴリID "zeta" の表示名が複数定義されています。（b.json）']


def test_rejected_file_does_not_create_category(write_exam) -> None:
    write_exam("bad.json", make_exam({"id": "bad", "category": "Ghost"}, [make_question("", "A")]))
    path = write_exam("good.json", make_exam({"id": "good", "category": "Real"}, [make_question("q", "A")]))

    catalog = load_exam_catalog(path.parent)

    assert list(catalog.categories) == ["real"]


def test_difficulty_is_normalized(write_exam) -> None:
    path = write_exam("levels.json", make_exam({"id": "levels"}, [
        make_question("one", "A", difficulty="Beginner"),
        make_question("two", "A", difficulty="unknown"),
        make_question("three", "A", difficulty="難しい"),
    ]))

    questions = load_exam_catalog(path.parent).exams["levels"].questions
    assert [question.difficulty for question in questions] == ["easy", "normal", "hard"]


def test_catalog_helpers(catalog_service: CatalogService) -> None:
    catalog = catalog_service.get_catalog()

    assert catalog.errors == []
    assert list(catalog.exams) == ["networking", "mixed", "security"]
    assert exam_ids_for_category(catalog, "cloud") == ["networking", "mixed"]
    assert exam_ids_for_category(catalog, "missing") == []
    assert question_count_for_exam(catalog.exams["mixed"]) == 6
    assert question_count_for_category(catalog, "cloud") == 8
    assert question_count_for_category(catalog, "missing") == 0


def test_catalog_service_caches_until_reload(bank_dir: Path, write_exam) -> None:
    service = CatalogService(bank_dir)
    first = service.get_catalog()
    assert service.get_catalog() is first

    write_exam("extra.json", make_exam({"id": "extra"}, [make_question("q", "A")]))
    assert "extra" not in service.get_catalog().exams

    reloaded = service.reload()
    assert "extra" in reloaded.exams
    assert service.get_catalog() is reloaded


def test_catalog_service_without_cache(bank_dir: Path) -> None:
    service = CatalogService(bank_dir, cache_enabled=False)
    assert service.get_catalog() is not service.get_catalog()

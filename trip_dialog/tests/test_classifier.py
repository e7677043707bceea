"""
Tests for the input classifier.
"""

from trip_dialog.parsing.classifier import Classifier, ClassifierConfig
from trip_dialog.parsing.schemas import ParseContext
from trip_dialog.shared.contracts.trip_plan import Destination, TripPlan


def _make_classifier():
    """Create a classifier with the default matcher and config."""
    return Classifier()


def _make_context():
    """Create a context holding a one-city plan."""
    return ParseContext(
        session_id="test-session-001",
        current_plan=TripPlan.build([Destination(city="London", days=5)]),
    )


class TestClassificationRules:
    """Tests for each classification rule."""

    def test_structured(self):
        """Duration plus city is structured."""
        result = _make_classifier().classify("5 days in London")
        assert result.type == "structured"
        assert result.confidence == 0.9
        assert result.complexity == "simple"
        assert result.features["has_explicit_duration"] is True
        assert result.features["has_cities"] is True

    def test_structured_confidence_capped(self):
        """Every corroborating signal present still caps at 0.95."""
        result = _make_classifier().classify("5 days in London from Boston")
        assert result.type == "structured"
        assert result.features["has_origin"] is True
        assert result.confidence == 0.95

    def test_complex_list(self):
        """Long multi-city lists are complex."""
        result = _make_classifier().classify("2 weeks in Lisbon and Granada, 10 days lisbon, 4 granada")
        assert result.type == "structured"
        assert result.complexity == "complex"
        assert result.features["has_multi_destinations"] is True

    def test_question(self):
        """Questions without travel intent."""
        result = _make_classifier().classify("What's the weather like in Paris?")
        assert result.type == "question"
        assert result.confidence == 0.9

    def test_conversational(self):
        """Natural-language requests are conversational and complex."""
        result = _make_classifier().classify("I'd like a romantic getaway somewhere warm")
        assert result.type == "conversational"
        assert result.confidence == 0.7
        assert result.complexity == "complex"

    def test_modification_needs_context(self):
        """Modification language only counts when a plan exists."""
        classifier = _make_classifier()
        with_plan = classifier.classify("add Rome", _make_context())
        without_plan = classifier.classify("add Rome")
        assert with_plan.type == "modification"
        assert with_plan.confidence == 0.8
        assert without_plan.type == "ambiguous"

    def test_vague_region_is_ambiguous(self):
        """A bare region is ambiguous with low confidence."""
        result = _make_classifier().classify("Europe")
        assert result.type == "ambiguous"
        assert result.confidence < 0.5
        assert result.features["has_vague_region"] is True


class TestContextContinuation:
    """Tests for the continues_context feature."""

    def test_origin_only_continues_context(self):
        """'from NYC' after a plan continues it."""
        result = _make_classifier().classify("from NYC", _make_context())
        assert result.type == "ambiguous"
        assert result.features["has_origin"] is True
        assert result.features["continues_context"] is True

    def test_no_context_no_continuation(self):
        """Without a plan there is nothing to continue."""
        result = _make_classifier().classify("from NYC")
        assert result.features["continues_context"] is False

    def test_new_cities_are_not_continuation(self):
        """Naming cities starts a new plan."""
        result = _make_classifier().classify("3 days in Rome", _make_context())
        assert result.features["continues_context"] is False


class TestClassifierPurity:
    """Tests for determinism and configuration."""

    def test_same_input_same_output(self):
        """Classification is a pure function of its inputs."""
        classifier = _make_classifier()
        text = "10 days in Tokyo and Kyoto from Seoul"
        assert classifier.classify(text) == classifier.classify(text)

    def test_custom_config(self):
        """Rule confidences come from the config."""
        classifier = Classifier(config=ClassifierConfig(question_confidence=0.75))
        assert classifier.classify("Is Paris expensive?").confidence == 0.75

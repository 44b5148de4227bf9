import json

import numpy as np
import pytest

from facecore.inference.templates import (
    AggregatedTemplate,
    LegacyVector,
    build_template,
    compute_mean,
    parse_template,
)


def test_compute_mean():
    assert compute_mean([[1, 2], [3, 4]]) == [2.0, 3.0]
    with pytest.raises(ValueError):
        compute_mean([])


def test_build_template_stores_mean_of_exact_samples():
    samples = [[0.1, 0.2, 0.3], [0.3, 0.2, 0.1], [0.2, 0.5, 0.2]]
    template = build_template(samples)
    assert template.sample_count == 3
    assert template.dimension == 3
    stored = template.to_json()
    np.testing.assert_allclose(stored['mean'], np.mean(stored['samples'], axis=0))


def test_build_template_rejects_ragged_or_non_numeric():
    with pytest.raises(ValueError):
        build_template([[1.0, 2.0], [1.0]])
    with pytest.raises(ValueError):
        build_template([[1.0, 'x']])
    with pytest.raises(ValueError):
        build_template([[1.0, float('nan')]])
    with pytest.raises(ValueError):
        build_template([])


def test_parse_legacy_vector_from_json_text():
    template = parse_template('[0.5, 0.25]')
    assert isinstance(template, LegacyVector)
    assert template.kind == 'legacy'
    assert template.comparison_vectors() == [(0.5, 0.25)]
    assert template.sample_count == 1


def test_parse_aggregated_compares_samples():
    raw = {'mean': [0.0, 0.0], 'samples': [[1.0, 1.0], [-1.0, -1.0]]}
    template = parse_template(json.dumps(raw))
    assert isinstance(template, AggregatedTemplate)
    assert template.comparison_vectors() == [(1.0, 1.0), (-1.0, -1.0)]


def test_parse_aggregated_drops_bad_samples_and_falls_back_to_mean():
    template = parse_template({'mean': [0.1, 0.2], 'samples': [['a', 1], None, [True, 1.0]]})
    assert template.samples == ()
    assert template.comparison_vectors() == [(0.1, 0.2)]

    mixed = parse_template({'mean': [0.1, 0.2], 'samples': [[1.0, 2.0], 'junk']})
    assert mixed.comparison_vectors() == [(1.0, 2.0)]


@pytest.mark.parametrize('raw', [None, '', 'not json', '{}', '[]', 42, '"text"', {'samples': []}, b'  '])
def test_parse_unusable_values(raw):
    assert parse_template(raw) is None


def test_round_trip_through_json():
    template = build_template([[1.0, 2.0], [3.0, 4.0]])
    parsed = parse_template(json.dumps(template.to_json()))
    assert parsed == template

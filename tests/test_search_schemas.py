import pytest
from pydantic import ValidationError

from prospect_finder.config import settings
from prospect_finder.schemas.search import BusinessDiscoveryConfig, JobDiscoveryConfig, JobPlatform


def test_job_config_cleans_input():
    config = JobDiscoveryConfig(
        platforms=["linkedin", "indeed", "linkedin"],
        keywords=["  web developer ", "", "react"],
        location="   ",
    )
    assert config.platforms == [JobPlatform.LINKEDIN, JobPlatform.INDEED]
    assert config.keywords == ["web developer", "react"]
    assert config.location is None
    assert config.max_results == settings.max_job_results


def test_job_config_clamps_max_results():
    assert JobDiscoveryConfig(platforms=["jobat"], keywords=["php"], max_results=0).max_results == 1
    assert (
        JobDiscoveryConfig(platforms=["jobat"], keywords=["php"], max_results=10_000).max_results
        == settings.max_job_results_cap
    )


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"platforms": [], "keywords": ["php"]}, "No platforms specified"),
        ({"platforms": ["jobat"], "keywords": ["  "]}, "No keywords specified"),
        ({"platforms": ["jobat"], "keywords": ["php"] * 21}, "Maximum 20 keywords"),
        ({"platforms": ["jobat"], "keywords": ["p" * 101]}, "at most 100 characters"),
    ],
)
def test_job_config_rejects_bad_input(kwargs, message):
    with pytest.raises(ValidationError, match=message):
        JobDiscoveryConfig(**kwargs)


def test_business_config_defaults():
    config = BusinessDiscoveryConfig(location_query=" Liège ", categories=["garage", " ", "boulangerie "])
    assert config.location_query == "Liège"
    assert config.categories == ["garage", "boulangerie"]
    assert config.min_rating == 0.0
    assert config.exclude_existing == []


def test_business_config_validates_rating():
    with pytest.raises(ValidationError):
        BusinessDiscoveryConfig(location_query="Namur", min_rating=6)

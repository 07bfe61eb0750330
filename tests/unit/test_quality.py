"""Tests for listing data-quality checks."""

from tourgate.core.types import ListingItem, QualityIssueType, Severity
from tourgate.pipeline.quality import check_listing, quality_report

VALID_X, VALID_Y = "1269769930", "375788222"


def _item(content_id="1", image="http://img/1.jpg", address="서울 종로구", map_x=VALID_X, map_y=VALID_Y):
    return ListingItem(content_id=content_id, category_id="12", title=f"place {content_id}",
                       address=address, map_x=map_x, map_y=map_y, image_url=image)


class TestCheckListing:
    def test_complete_listing_has_no_issues(self):
        assert check_listing(_item()) == []

    def test_thumbnail_counts_as_image(self):
        item = _item(image=None)
        item.thumbnail_url = "http://img/1s.jpg"
        assert check_listing(item) == []

    def test_missing_everything(self):
        issues = check_listing(_item(image=None, address="  ", map_x="", map_y=""))
        assert [(i.type, i.severity) for i in issues] == [
            (QualityIssueType.MISSING_IMAGE, Severity.LOW),
            (QualityIssueType.MISSING_ADDRESS, Severity.HIGH),
            (QualityIssueType.MISSING_COORDINATES, Severity.HIGH),
        ]

    def test_invalid_coordinates(self):
        [issue] = check_listing(_item(map_x="1000000000"))
        assert issue.type == QualityIssueType.INVALID_COORDINATES
        assert issue.content_id == "1"


class TestQualityReport:
    def test_empty_batch_scores_100(self):
        report = quality_report([])
        assert report.score == 100
        assert report.total_items == 0
        assert report.issues == []

    def test_perfect_batch(self):
        report = quality_report([_item("1"), _item("2")])
        assert report.score == 100
        assert report.items_with_valid_coordinates == 2

    def test_weighted_score(self):
        items = [
            _item("1"),
            _item("2", image=None),
            _item("3", map_x="", map_y=""),
            _item("4", address=""),
        ]
        report = quality_report(items)
        assert report.items_with_images == 3
        assert report.items_with_address == 3
        assert report.items_with_valid_coordinates == 3
        # 3/4 of every weight
        assert report.score == 75
        assert len(report.issues) == 3

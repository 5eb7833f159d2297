"""
test_flow.py — Unit tests for vertical flow and pagination.

Compact layout (see conftest): body_top=50, continuation_top=30,
page_bottom=480, box_spacing=6. A salary record box is 76 high, so the
stride is 82 and five boxes fit on every page.

Tests cover:
    - Input order preserved across pages
    - Boxes never split across a page boundary
    - Footer placement and relocation to a new page
    - Zero records
    - Single-canvas height
"""

from dataclasses import replace

import pytest

from lookup_reports.flow import flow
from lookup_reports.layout import BlockLayoutEngine
from lookup_reports.report_types import SALARY

FOOTER = 50.0


@pytest.fixture
def engine(compact_layout, fixed_metrics):
    return BlockLayoutEngine(compact_layout, fixed_metrics)


def _records(salary_record, n):
    return [dict(salary_record, empresa=f"EMPRESA {i}") for i in range(n)]


class TestPagination:

    def test_first_page_positions(self, engine, salary_record):
        result = flow(_records(salary_record, 5), SALARY, engine, 0.0)
        ys = [p.y for p in result.pages[0].placements]
        assert ys == [50, 132, 214, 296, 378]

    def test_twelve_records_three_pages(self, engine, salary_record):
        result = flow(_records(salary_record, 12), SALARY, engine, FOOTER)
        assert result.page_count == 3
        assert [len(page.placements) for page in result.pages] == [5, 5, 2]
        assert [p.y for p in result.pages[1].placements] == [30, 112, 194, 276, 358]

    def test_order_preserved(self, engine, salary_record):
        result = flow(_records(salary_record, 12), SALARY, engine, FOOTER)
        assert [p.index for p in result.placements] == list(range(12))

    def test_no_box_crosses_page_bottom(self, engine, salary_record):
        records = _records(salary_record, 20)
        records[3] = dict(salary_record, empresa="GRUPO " * 80)
        result = flow(records, SALARY, engine, FOOTER)
        for page in result.pages:
            for placement in page.placements:
                assert placement.bottom <= engine.config.page_bottom

    def test_boxes_do_not_overlap(self, engine, salary_record):
        result = flow(_records(salary_record, 9), SALARY, engine, FOOTER)
        for page in result.pages:
            for above, below in zip(page.placements, page.placements[1:]):
                assert below.y >= above.bottom + engine.config.box_spacing

    def test_heights_match_measure(self, engine, salary_record):
        records = _records(salary_record, 4)
        records[1] = dict(salary_record, empresa="CORPORACION " * 20)
        result = flow(records, SALARY, engine, FOOTER)
        for placement in result.placements:
            assert placement.height == engine.measure(records[placement.index], SALARY)

    def test_oversize_box_placed_alone(self, compact_layout, fixed_metrics, salary_record):
        engine = BlockLayoutEngine(replace(compact_layout, min_box_height=600.0), fixed_metrics)
        result = flow(_records(salary_record, 2), SALARY, engine, FOOTER)
        assert [len(page.placements) for page in result.pages[:2]] == [1, 1]
        assert result.pages[1].placements[0].y == 30


class TestFooter:

    def test_footer_follows_last_box(self, engine, salary_record):
        result = flow(_records(salary_record, 12), SALARY, engine, FOOTER)
        assert result.footer_page == 3
        assert result.footer_y == 188 + engine.config.footer_gap

    def test_footer_moves_to_new_page(self, engine, salary_record):
        # last bottom 454 + gap 24 = 478 > threshold 500 - 50 - 40 = 410
        result = flow(_records(salary_record, 5), SALARY, engine, FOOTER)
        assert result.page_count == 2
        assert result.footer_page == 2
        assert result.pages[1].placements == []
        assert result.footer_y == engine.config.continuation_top

    def test_footer_at_threshold_stays(self, engine, salary_record):
        # 3 boxes: last bottom 290, footer at 314; threshold with footer 146 is 314
        result = flow(_records(salary_record, 3), SALARY, engine, 146.0)
        assert result.page_count == 1
        assert result.footer_y == 314

    def test_zero_records(self, engine):
        result = flow([], SALARY, engine, FOOTER)
        assert result.page_count == 1
        assert result.placements == []
        assert result.footer_y == engine.config.body_top + engine.config.footer_gap

    def test_paginated_has_no_canvas_height(self, engine, salary_record):
        assert flow(_records(salary_record, 2), SALARY, engine, FOOTER).canvas_height is None


class TestSingleCanvas:

    @pytest.fixture
    def canvas_engine(self, compact_layout, fixed_metrics):
        return BlockLayoutEngine(replace(compact_layout, page_height=None), fixed_metrics)

    def test_never_paginates(self, canvas_engine, salary_record):
        result = flow(_records(salary_record, 40), SALARY, canvas_engine, FOOTER)
        assert result.page_count == 1
        assert len(result.pages[0].placements) == 40

    def test_canvas_height_from_content(self, canvas_engine, salary_record):
        result = flow(_records(salary_record, 3), SALARY, canvas_engine, FOOTER)
        # last bottom 290 + gap 24 = footer 314; + footer 50 + margin 20
        assert result.footer_y == 314
        assert result.canvas_height == 384

    def test_empty_canvas(self, canvas_engine):
        result = flow([], SALARY, canvas_engine, FOOTER)
        assert result.canvas_height == 50 + 24 + FOOTER + 20

import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PyQt6.QtWidgets")

from hier_browser.record_filters import FilterOptions  # noqa: E402
from hier_browser.record_loader import RawRecord, RecordSetContainer  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


@pytest.fixture
def window(qapp):
    import pyqt_app

    main_window = pyqt_app.HierarchyBrowserApp()
    yield main_window
    main_window.close()


def test_new_report_resets_filters(window, record_set):
    window._set_record_set(record_set)
    window.min_connections_edit.setText("10")
    window.max_wns_edit.setText("-1")
    window.show_internal_checkbox.setChecked(False)
    window.apply_filters()
    assert window.store.current.options != FilterOptions()

    window._set_record_set(RecordSetContainer.from_records([RawRecord("top/a", "top/b", 3, -1.0, -2.0, "to")]))

    assert window.min_connections_edit.text() == "0"
    assert window.max_wns_edit.text() == "0"
    assert window.max_tns_edit.text() == "0"
    assert window.show_internal_checkbox.isChecked()
    assert window.store.current.options == FilterOptions()


def test_info_panel_ranks_every_loaded_row(window, record_set):
    window._set_record_set(record_set)
    assert len(window.store.current.records) < len(record_set)

    window._update_info_panel("top/d")

    assert window.info_models["connections"].rowCount() == 2

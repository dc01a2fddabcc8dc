"""
Tests for CPU thread sizing.
"""

from unittest.mock import patch

from pdfstudio.system_resources import ResourceInfo, get_inference_threads, get_system_resources


def _resources(physical, logical=None):
    return ResourceInfo(physical_cores=physical, logical_cores=logical or physical * 2,
                        available_ram_gb=8.0)


class TestInferenceThreads:
    def test_leaves_one_core_free(self):
        with patch("pdfstudio.system_resources.get_system_resources", return_value=_resources(4)):
            assert get_inference_threads(max_threads=8) == 3

    def test_capped(self):
        with patch("pdfstudio.system_resources.get_system_resources", return_value=_resources(16)):
            assert get_inference_threads(max_threads=4) == 4

    def test_single_core(self):
        with patch("pdfstudio.system_resources.get_system_resources", return_value=_resources(1)):
            assert get_inference_threads() == 1

    def test_real_machine(self):
        resources = get_system_resources()
        assert resources.physical_cores >= 1
        assert resources.logical_cores >= 1

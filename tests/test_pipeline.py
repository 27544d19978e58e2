import json
import logging
import SimpleITK as sitk
import pytest
from conftest import BALL_CENTER, BALL_RADIUS, SIZE
from fiducial_localization.data_structures import LocalizationMethod
from fiducial_localization.exceptions import LocalizationError
from fiducial_localization.parameters import LocalizationParameters
from fiducial_localization.pipeline import FiducialLocalizer, run_localization, save_results
from fiducial_localization.preprocessing import extract_roi, roi_around_point
import run_localization as cli


def test_extract_roi_keeps_physical_frame(ball_image):
    roi = extract_roi(ball_image, (10, 12, 8), (5, 6, 7))

    assert roi.GetSize() == (5, 6, 7)
    assert roi.TransformIndexToPhysicalPoint((0, 0, 0)) == pytest.approx(
        ball_image.TransformIndexToPhysicalPoint((10, 12, 8)))
    assert roi.GetSpacing() == pytest.approx(ball_image.GetSpacing())


@pytest.mark.parametrize("index, size", [
    ((-1, 0, 0), (5, 5, 5)),
    ((38, 0, 0), (5, 5, 5)),
    ((0, 0, 0), (0, 5, 5)),
    ((0, 0), (5, 5)),
])
def test_extract_roi_outside_image(ball_image, index, size):
    with pytest.raises(LocalizationError):
        extract_roi(ball_image, index, size)


def test_roi_around_point(ball_image):
    index, size = roi_around_point(ball_image, BALL_CENTER, 8.0)
    center_index = ball_image.TransformPhysicalPointToIndex(BALL_CENTER)

    for start, extent, c, limit in zip(index, size, center_index, SIZE):
        assert 0 <= start <= c < start + extent <= limit

    roi = extract_roi(ball_image, index, size)
    assert roi.GetSize() == size


def test_roi_around_point_is_clipped(ball_image):
    corner = ball_image.TransformIndexToPhysicalPoint((0, 0, 0))
    index, size = roi_around_point(ball_image, corner, 5.0)
    assert index == (0, 0, 0)


def test_roi_around_point_outside_image(ball_image):
    with pytest.raises(LocalizationError):
        roi_around_point(ball_image, (-500.0, 0.0, 0.0), 5.0)


def test_localizer_runs_all_methods(ball_image, tmp_path):
    localizer = FiducialLocalizer(ball_image, output_dir=str(tmp_path))
    index, size = roi_around_point(ball_image, BALL_CENTER, 10.0)

    results = localizer.process([(index, size), ((0, 0, 0), SIZE)])

    assert len(results) == 6
    assert [r.method for r in results[:3]] == list(LocalizationMethod)
    for result in results:
        assert result.succeeded
        assert result.estimate.center == pytest.approx(BALL_CENTER, abs=0.5)
        assert result.estimate.radius == pytest.approx(BALL_RADIUS, abs=1.0)

    saved = json.loads((tmp_path / 'fiducials.json').read_text())
    assert len(saved['fiducials']) == 6
    assert saved['fiducials'][3]['roi_id'] == 1
    assert saved['parameters']['canny_variance'] == 1.0
    assert (tmp_path / 'localization.log').exists()


def test_localizer_records_failures(ball_image):
    params = LocalizationParameters(min_component_voxels=10**6)
    localizer = FiducialLocalizer(
        ball_image,
        params=params,
        methods=['segmentation', 'edges']
    )

    results = localizer.localize_roi(0, (0, 0, 0), SIZE)

    assert not results[0].succeeded
    assert results[0].error.startswith('NoComponentFoundError')
    assert results[1].succeeded


def test_save_results(ball_image, tmp_path):
    results = FiducialLocalizer(ball_image, methods=['segmentation']).localize_roi(0, (0, 0, 0), SIZE)
    output_path = tmp_path / 'nested' / 'out.json'

    save_results(results, str(output_path))

    saved = json.loads(output_path.read_text())
    assert saved['fiducials'][0]['method'] == 'segmentation'
    assert saved['fiducials'][0]['estimate']['center'] == pytest.approx(list(BALL_CENTER), abs=0.3)
    assert 'parameters' not in saved


def test_run_localization_from_file(ball_image, tmp_path):
    volume_path = str(tmp_path / 'ct.nrrd')
    sitk.WriteImage(ball_image, volume_path)

    results = run_localization(volume_path, [((0, 0, 0), SIZE)], methods=['weighted_edges'])

    assert len(results) == 1
    assert results[0].estimate.center == pytest.approx(BALL_CENTER, abs=0.5)


def test_command_line(ball_image, tmp_path, capsys):
    volume_path = str(tmp_path / 'ct.nrrd')
    sitk.WriteImage(ball_image, volume_path)
    output_dir = tmp_path / 'out'

    cli.main([
        '--input', volume_path,
        '--output-folder', str(output_dir),
        '--point', *map(str, BALL_CENTER),
        '--roi', '0', '0', '0', '40', '40', '40',
        '--methods', 'segmentation', 'edges',
        '--canny-variance', '0.8',
    ])

    saved = json.loads((output_dir / 'fiducials.json').read_text())
    assert len(saved['fiducials']) == 4
    assert saved['parameters']['canny_variance'] == 0.8
    assert 'radius=' in capsys.readouterr().out


def test_command_line_requires_roi(tmp_path):
    with pytest.raises(SystemExit):
        cli.parse_args(['--input', str(tmp_path / 'ct.nrrd')])


def test_roi_outside_image_is_recorded(ball_image, tmp_path):
    localizer = FiducialLocalizer(
        ball_image,
        methods=['segmentation', 'edges'],
        output_dir=str(tmp_path)
    )

    results = localizer.process([((0, 0, 0), SIZE), ((35, 0, 0), (10, 10, 10))])

    assert len(results) == 4
    assert all(r.succeeded for r in results[:2])
    for result in results[2:]:
        assert result.roi_id == 1
        assert not result.succeeded
        assert result.error.startswith('LocalizationError')

    saved = json.loads((tmp_path / 'fiducials.json').read_text())
    assert len(saved['fiducials']) == 4


def test_log_file_handler_is_removed(ball_image, tmp_path):
    package_logger = logging.getLogger('fiducial_localization')
    handlers_before = list(package_logger.handlers)

    for name in ('a', 'b', 'c'):
        FiducialLocalizer(ball_image, methods=['segmentation'], output_dir=str(tmp_path / name)).process(
            [((0, 0, 0), SIZE)])

    assert package_logger.handlers == handlers_before
    for name in ('a', 'b', 'c'):
        assert (tmp_path / name / 'localization.log').read_text().count('Localization completed') == 1


def test_log_file_receives_fit_warnings(ball_image, tmp_path):
    params = LocalizationParameters(max_condition_number=1.0)
    localizer = FiducialLocalizer(ball_image, params=params, methods=['edges'], output_dir=str(tmp_path))

    localizer.process([((0, 0, 0), SIZE)])

    log_text = (tmp_path / 'localization.log').read_text()
    assert 'fiducial_localization.sphere_fitting - WARNING' in log_text
    assert 'ill-conditioned' in log_text
    assert 'edge voxels' in log_text

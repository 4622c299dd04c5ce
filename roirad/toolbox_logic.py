import contextlib
import logging
import os
import sys

import joblib
import numpy as np

from .exceptions import EmptyROIError, ShapeMismatchError

LOGGER_NAME = 'roirad'


def validate_image_and_mask(image_array, mask_array):
    """
    Checks that the image and the ROI mask can be analysed together.

    Parameters:
    image_array (np.ndarray): 2D or 3D intensity array.
    mask_array (np.ndarray): Array of the same shape, nonzero inside the ROI.

    Returns:
    tuple: (image, mask) as 3D float64 and bool arrays. 2D input gets a trailing slice axis.

    Raises:
    ShapeMismatchError: If the shapes differ or the arrays are not 2D/3D.
    EmptyROIError: If the mask has no voxel set.
    """
    image_array = np.asarray(image_array, dtype=np.float64)
    mask_array = np.asarray(mask_array)

    if image_array.shape != mask_array.shape:
        raise ShapeMismatchError(f"Image shape {image_array.shape} does not match mask shape {mask_array.shape}.")
    if image_array.ndim == 2:
        image_array = image_array[:, :, np.newaxis]
        mask_array = mask_array[:, :, np.newaxis]
    elif image_array.ndim != 3:
        raise ShapeMismatchError(f"Expected a 2D or 3D array, got {image_array.ndim} dimensions.")

    mask_array = mask_array.astype(bool)
    if not np.any(mask_array):
        raise EmptyROIError("No valid voxels in the ROI mask.")

    return image_array, mask_array


def get_bounding_box(mask):
    """
    Finds the inclusive [min, max] index range of the true voxels along each axis.

    Parameters:
    mask (np.ndarray): Boolean array of any dimensionality.

    Returns:
    np.ndarray: Integer array of shape (ndim, 2).
    """
    if not np.any(mask):
        raise EmptyROIError("No valid voxels in the ROI mask.")

    bounding_box = np.zeros((mask.ndim, 2), dtype=int)
    for axis in range(mask.ndim):
        other_axes = tuple(a for a in range(mask.ndim) if a != axis)
        non_empty = np.where(mask.any(axis=other_axes))[0]
        bounding_box[axis] = non_empty[0], non_empty[-1]

    return bounding_box


def bounding_box_slices(bounding_box):
    return tuple(slice(low, high + 1) for low, high in bounding_box)


def get_logger(logger_date_time, log_to_file=False):
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

        if log_to_file:
            # File handler with UTF-8 encoding
            logs_path = os.path.join(os.getcwd(), 'logs')
            os.makedirs(logs_path, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(logs_path, f'{logger_date_time}.log'), encoding='utf-8')
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            logger.addHandler(file_handler)

        # Console handler with UTF-8 encoding
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.ERROR)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def handle_uncaught_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger = logging.getLogger(LOGGER_NAME)
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))
    logging.shutdown()


def close_all_loggers():
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in package_logger.handlers[:]:
        handler.close()
        package_logger.removeHandler(handler)

    # Child loggers of the package (roirad.radiomics..., roirad.preprocessing...)
    for logger_name in list(logging.root.manager.loggerDict):
        if logger_name.startswith(LOGGER_NAME + '.'):
            logger = logging.getLogger(logger_name)
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)


@contextlib.contextmanager
def tqdm_joblib(tqdm_object):
    """Context manager to patch joblib to report into tqdm progress bar given as argument.
    source: https://stackoverflow.com/a/58936697/3859823
    """

    class TqdmBatchCompletionCallback(joblib.parallel.BatchCompletionCallBack):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)

        def __call__(self, *args, **kwargs):
            tqdm_object.update(n=self.batch_size)
            return super().__call__(*args, **kwargs)

    old_batch_callback = joblib.parallel.BatchCompletionCallBack
    joblib.parallel.BatchCompletionCallBack = TqdmBatchCompletionCallback
    try:
        yield tqdm_object
    finally:
        joblib.parallel.BatchCompletionCallBack = old_batch_callback
        tqdm_object.close()

# Copyright © 2023-2026 Gurobi Optimization, LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""Find the convertor turning a trained predictor into a :py:class:`Network`."""

import sys

from .exceptions import NotRegistered
from .neuralnet import Network

USER_CONVERTORS = {}


def register_network_convertor(predictor, convertor):
    """Register a convertor for a new type of trained predictor.

    Parameters
    ----------
    predictor:
        Class of the predictor (or its name).
    convertor:
        Function taking a trained object of class predictor and returning
        the corresponding :py:class:`nn2mip.neuralnet.Network`.
    """
    USER_CONVERTORS[predictor] = convertor


def sklearn_convertors():
    """Collect convertors for Scikit-learn objects."""
    if "sklearn" in sys.modules:
        from .sklearn import (  # pylint: disable=import-outside-toplevel
            network_from_mlp_regressor,
        )

        return {"MLPRegressor": network_from_mlp_regressor}
    return {}


def pytorch_convertors():
    """Collect convertors for PyTorch objects."""
    if "torch" in sys.modules:
        import torch  # pylint: disable=import-outside-toplevel

        from .torch import (  # pylint: disable=import-outside-toplevel
            network_from_sequential,
        )

        return {torch.nn.Sequential: network_from_sequential}
    return {}


def keras_convertors():
    """Collect convertors for Keras objects."""
    if "keras" in sys.modules or "tensorflow" in sys.modules:
        import keras  # pylint: disable=import-outside-toplevel

        from .keras import network_from_keras  # pylint: disable=import-outside-toplevel

        return {
            keras.Sequential: network_from_keras,
        }
    return {}


def registered_convertors():
    """Return the dictionary of all known convertors."""
    convertors = {}
    convertors |= sklearn_convertors()
    convertors |= pytorch_convertors()
    convertors |= keras_convertors()
    convertors |= USER_CONVERTORS
    return convertors


def get_convertor(predictor, convertors):
    """Return the convertor for predictor.

    Look for the type of predictor, then for its parent classes and finally
    for the name of its class.
    """
    for parent in type(predictor).mro():
        try:
            return convertors[parent]
        except KeyError:
            pass
    return convertors.get(type(predictor).__name__)


def as_network(predictor):
    """Return the :py:class:`Network` corresponding to a trained predictor.

    Parameters
    ----------
    predictor:
        A :py:class:`Network` (returned as is) or a trained object of a
        registered type.

    Raises
    ------
    NotRegistered
        If there is no convertor for the type of predictor.
    """
    if isinstance(predictor, Network):
        return predictor
    convertor = get_convertor(predictor, registered_convertors())
    if convertor is None:
        raise NotRegistered(type(predictor).__name__)
    return convertor(predictor)

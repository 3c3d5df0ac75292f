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

"""Interval bounds on the pre-activation values of the neurons of a layer."""

import numpy as np

from ..exceptions import ParameterError


def propagate_bounds(weights, bias, prev_upper, prev_lower, clamp=True):
    """Compute bounds on the pre-activation values of a dense layer.

    For every neuron j of the layer

    .. math::

        U_j = \\sum_i \\max(w_{ji} u_i, w_{ji} l_i) + b_j, \\quad
        L_j = \\sum_i \\min(w_{ji} u_i, w_{ji} l_i) + b_j

    where u and l are the bounds of the values entering the layer.

    Parameters
    ----------
    weights : ndarray
        Weight matrix of the layer (n_outputs, n_inputs).
    bias : ndarray
        Bias vector of the layer.
    prev_upper, prev_lower : ndarray
        Upper and lower bounds of the previous layer. For the first layer
        those are the bounds of the input, otherwise the pre-activation
        bounds of the previous layer.
    clamp : bool, optional
        If True, the previous bounds are passed through the ReLU of the
        previous layer (max(0, .)) before the affine map. Should be False
        for the first layer.

    Returns
    -------
    tuple of ndarray
        Upper and lower bounds for each neuron of the layer.
    """
    weights = np.asarray(weights, dtype=np.float64)
    prev_upper = np.asarray(prev_upper, dtype=np.float64)
    prev_lower = np.asarray(prev_lower, dtype=np.float64)
    if prev_upper.shape != (weights.shape[1],) or prev_lower.shape != (
        weights.shape[1],
    ):
        raise ParameterError(
            f"Bounds of previous layer should have length {weights.shape[1]}"
        )
    if clamp:
        prev_upper = np.maximum(prev_upper, 0.0)
        prev_lower = np.maximum(prev_lower, 0.0)

    with_upper = weights * prev_upper
    with_lower = weights * prev_lower
    upper = np.maximum(with_upper, with_lower).sum(axis=1) + bias
    lower = np.minimum(with_upper, with_lower).sum(axis=1) + bias
    return (upper, lower)


def network_bounds(network, input_upper, input_lower):
    """Propagated bounds of all the layers of network.

    Returns
    -------
    tuple of lists
        Lists of upper and lower bounds, the item k - 1 is for layer k.
    """
    bounds_upper = []
    bounds_lower = []
    upper, lower = input_upper, input_lower
    for k, layer in enumerate(network):
        upper, lower = propagate_bounds(
            layer.weights, layer.bias, upper, lower, clamp=k > 0
        )
        bounds_upper.append(upper)
        bounds_lower.append(lower)
    return (bounds_upper, bounds_lower)


def improve_bounds(upper, lower, new_upper, new_lower):
    """Take the best of two sets of bounds.

    new_upper and new_lower may contain None where no bound is known.
    """
    new_upper = np.array(
        [old if new is None else new for old, new in zip(upper, new_upper)],
        dtype=np.float64,
    )
    new_lower = np.array(
        [old if new is None else new for old, new in zip(lower, new_lower)],
        dtype=np.float64,
    )
    return (np.minimum(upper, new_upper), np.maximum(lower, new_lower))

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

"""Convert a :external+torch:py:class:`torch.nn.Sequential` model to a
:py:class:`nn2mip.neuralnet.Network`.
"""

import numpy as np
from torch import nn

from ..exceptions import NoModel
from ..neuralnet import Activation, DenseLayer, Network


def network_from_sequential(sequential_model, name=None):
    """Extract the layers of a sequential PyTorch model.

    Parameters
    ----------
    sequential_model : :external+torch:py:class:`torch.nn.Sequential`
        The trained model.
    name : str, optional
        Name of the network, by default ``"sequential"``.

    Returns
    -------
    Network

    Raises
    ------
    NoModel
        If the model uses a layer or activation that isn't supported.

    Warnings
    --------
    Supported layers:
    :external+torch:py:class:`torch.nn.Linear`,
    :external+torch:py:class:`torch.nn.ReLU`,
    :external+torch:py:class:`torch.nn.Dropout` and
    :external+torch:py:class:`torch.nn.Identity` (both treated as identity).
    Every Linear layer except the last must be followed by a ReLU.
    """
    if name is None:
        name = type(sequential_model).__name__.lower()
    weights = []
    biases = []
    activations = []
    for step in sequential_model:
        if isinstance(step, nn.Linear):
            weight = step.weight.detach().cpu().numpy().astype(np.float64)
            if step.bias is not None:
                bias = step.bias.detach().cpu().numpy().astype(np.float64)
            else:
                bias = np.zeros(weight.shape[0])
            weights.append(weight)
            biases.append(bias)
            activations.append(Activation.IDENTITY)
        elif isinstance(step, nn.ReLU):
            if len(activations) == 0 or activations[-1] is not Activation.IDENTITY:
                raise NoModel(
                    sequential_model, "ReLU should directly follow a Linear layer"
                )
            activations[-1] = Activation.RELU
        elif isinstance(step, (nn.Dropout, nn.Identity)):
            # Inactive at inference time
            pass
        else:
            raise NoModel(
                sequential_model, f"Unsupported layer {type(step).__name__}"
            )
    if len(weights) == 0:
        raise NoModel(sequential_model, "No Linear layer in model")
    return Network(
        [DenseLayer(w, b, a) for w, b, a in zip(weights, biases, activations)],
        name=name,
    )

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

"""Convert a :external+sklearn:py:class:`sklearn.neural_network.MLPRegressor`
to a :py:class:`nn2mip.neuralnet.Network`.
"""

from sklearn.utils.validation import check_is_fitted

from ..exceptions import NoModel
from ..neuralnet import Activation, DenseLayer, Network


def network_from_mlp_regressor(mlp_regressor, name=None):
    """Extract the layers of a trained multi-layer perceptron regressor.

    Parameters
    ----------
    mlp_regressor : :external+sklearn:py:class:`sklearn.neural_network.MLPRegressor`
        The trained regressor.
    name : str, optional
        Name of the network, by default ``"mlpregressor"``.

    Returns
    -------
    Network

    Raises
    ------
    NoModel
        If the regressor doesn't use the relu activation.
    """
    check_is_fitted(mlp_regressor)
    if mlp_regressor.activation != "relu":
        raise NoModel(
            mlp_regressor,
            f"No implementation for activation function {mlp_regressor.activation}",
        )
    if mlp_regressor.out_activation_ != "identity":
        raise NoModel(
            mlp_regressor,
            f"Output activation should be identity not {mlp_regressor.out_activation_}",
        )
    if name is None:
        name = type(mlp_regressor).__name__.lower()

    n_layers = len(mlp_regressor.coefs_)
    layers = []
    for i, (layer_coefs, layer_intercept) in enumerate(
        zip(mlp_regressor.coefs_, mlp_regressor.intercepts_)
    ):
        # sklearn stores coefficients as (n_inputs, n_outputs)
        activation = Activation.IDENTITY if i == n_layers - 1 else Activation.RELU
        layers.append(DenseLayer(layer_coefs.T, layer_intercept, activation))
    return Network(layers, name=name)

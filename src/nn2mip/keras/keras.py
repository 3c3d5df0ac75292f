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

"""Convert a Keras sequential model to a :py:class:`nn2mip.neuralnet.Network`."""

import keras
import numpy as np

from ..exceptions import NoModel
from ..neuralnet import Activation, DenseLayer, Network


def _set_relu(keras_model, activations):
    if len(activations) == 0 or activations[-1] is not Activation.IDENTITY:
        raise NoModel(keras_model, "ReLU should directly follow a Dense layer")
    activations[-1] = Activation.RELU


def network_from_keras(keras_model, name=None):
    """Extract the layers of a sequential Keras model.

    Parameters
    ----------
    keras_model : `keras.Sequential <https://keras.io/api/models/sequential/>`_
        The trained model.
    name : str, optional
        Name of the network, by default the name of the Keras model.

    Returns
    -------
    Network

    Raises
    ------
    NoModel
        If the model uses a layer or activation that isn't supported.

    Warnings
    --------
    Only `Dense <https://keras.io/api/layers/core_layers/dense/>`_ layers
    with ``relu`` or ``linear`` activation, `ReLU
    <https://keras.io/api/layers/activation_layers/relu/>`_ layers with
    default settings, ``Activation("relu")`` and ``Dropout`` are supported.
    """
    if not keras_model.built:
        raise NoModel(keras_model, "Model is not built")
    if name is None:
        name = keras_model.name
    weights = []
    biases = []
    activations = []
    for step in keras_model.layers:
        if isinstance(step, keras.layers.Dense):
            params = step.get_weights()
            kernel = np.asarray(params[0], dtype=np.float64)
            if len(params) > 1:
                bias = np.asarray(params[1], dtype=np.float64)
            else:
                bias = np.zeros(kernel.shape[1])
            activation = step.get_config()["activation"]
            if activation not in ("relu", "linear"):
                raise NoModel(keras_model, f"Unsupported activation {activation}")
            weights.append(kernel.T)
            biases.append(bias)
            activations.append(Activation.from_name(activation))
        elif isinstance(step, keras.layers.ReLU):
            config = step.get_config()
            if config.get("negative_slope", 0.0) != 0.0:
                raise NoModel(keras_model, "Only handle ReLU layers with negative slope 0.0")
            if config.get("threshold", 0.0) != 0.0:
                raise NoModel(keras_model, "Only handle ReLU layers with threshold of 0.0")
            if config.get("max_value") is not None:
                raise NoModel(keras_model, "Only handle ReLU layers without maxvalue")
            _set_relu(keras_model, activations)
        elif isinstance(step, keras.layers.Activation):
            activation = step.get_config()["activation"]
            if activation == "relu":
                _set_relu(keras_model, activations)
            elif activation != "linear":
                raise NoModel(keras_model, f"Unsupported activation {activation}")
        elif isinstance(step, (keras.layers.Dropout, keras.layers.InputLayer)):
            pass
        else:
            raise NoModel(
                keras_model, f"Unsupported network layer {type(step).__name__}"
            )
    if len(weights) == 0:
        raise NoModel(keras_model, "No Dense layer in model")
    return Network(
        [DenseLayer(w, b, a) for w, b, a in zip(weights, biases, activations)],
        name=name,
    )

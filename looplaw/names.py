#!/usr/bin/env python3
#
# Copyright 2022 Max Planck Insitute Magdeburg
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
#
#
#
"""Static strings and default values used in the looplaw package

    Preprocessing levels

        NULLSPACE = 1

        FAST_SNP = 2

        MIN_NULLSPACE = 3

        EFM_LINKS = 4

    Constraint senses and variable types

        EQUAL = 'E'

        LESS = 'L'

        GREATER = 'G'

        CONTINUOUS = 'C'

        BINARY = 'B'

    Loop law encodings

        SINGLE_INDICATOR = 'single_indicator'

        SPLIT_INDICATORS = 'split_indicators'

        RANGED_ROWS = 'ranged_rows'

    Configuration keys

        PREPROCESS = 'preprocess'

        LOOP_INFO = 'loop_info'

        ENCODING = 'encoding'

        COMBINE_VARS = 'combine_vars'

        NULLSPACE_PROVIDER = 'nullspace_provider'

        EFM_ENUMERATOR = 'efm_enumerator'

        EFM_PATH = 'efm_path'

        SEED = 'seed'

    Reaction links

        UNAVAILABLE = 'unavailable'
"""

# Preprocessing levels
NULLSPACE = 1
FAST_SNP = 2
MIN_NULLSPACE = 3
EFM_LINKS = 4
PREPROCESS_LEVELS = (NULLSPACE, FAST_SNP, MIN_NULLSPACE, EFM_LINKS)

# Constraint senses and variable types
EQUAL = 'E'
LESS = 'L'
GREATER = 'G'
CONTINUOUS = 'C'
BINARY = 'B'

# Loop law encodings. Only SINGLE_INDICATOR is built, the other two are kept
# as names of historical formulations (separate forward/reverse indicators and
# ranged rows with paired row bounds).
SINGLE_INDICATOR = 'single_indicator'
SPLIT_INDICATORS = 'split_indicators'
RANGED_ROWS = 'ranged_rows'
ENCODINGS = (SINGLE_INDICATOR, SPLIT_INDICATORS, RANGED_ROWS)

# Configuration keys
PREPROCESS = 'preprocess'
LOOP_INFO = 'loop_info'
ENCODING = 'encoding'
COMBINE_VARS = 'combine_vars'
NULLSPACE_PROVIDER = 'nullspace_provider'
EFM_ENUMERATOR = 'efm_enumerator'
EFM_PATH = 'efm_path'
SEED = 'seed'

# Big M constants: fluxes, energies, energy variable bounds
MV = 'Mv'
MG = 'Mg'
BDG = 'BDg'
MV_DEFAULT = 10000
MG_DEFAULT = 100
BDG_DEFAULT = 1000

# Reaction links
UNAVAILABLE = 'unavailable'

# Tolerances
NULL_TOL = 1e-6
MERGE_CUTOFF = 0.9999999
EFM_CALL_DELAY = 1e-4

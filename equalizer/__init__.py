from equalizer.api import EqualizerApi
from equalizer.response import auto_preamp, band_response, composed_response, FREQUENCY_GRID
from equalizer.store import EqualizerStore, filter_reducer
from equalizer.throttle import ThrottledWriter, throttle

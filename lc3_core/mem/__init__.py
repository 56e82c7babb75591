# LC-3 Core - 64K word memory with device register routing

# LC-3 Core - CPU model: register file and instruction decoder
